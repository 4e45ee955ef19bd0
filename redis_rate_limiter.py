"""Redis-backed rate limiter middleware."""
import logging
import time
from typing import Optional, Tuple
import redis
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from auth import lookup_caller, parse_bearer
from errors import AuthenticationError
from monitoring import rate_limit_exceeded_counter, suspicious_activity_counter

logger = logging.getLogger(__name__)

SUSPICIOUS_WINDOW_SECONDS = 300

# (status predicate, redis key suffix, threshold, activity type)
SUSPICIOUS_PATTERNS = (
    (lambda code: code == 401, "401", 5, "credential_stuffing"),
    (lambda code: code == 403, "403", 10, "order_enumeration"),
    (lambda code: code == 404, "404", 10, "endpoint_scanning"),
    (lambda code: 400 <= code < 500, "4xx", 20, "abuse"),
)


class RedisRateLimiter(BaseHTTPMiddleware):
    """
    Sliding-window rate limiter shared across service instances via Redis.

    Two tiers are applied to every request:
    - Per client IP, with a high limit since buyers may share an address
    - Per authenticated user, with a lower limit

    Redis failures never block traffic: the limiter fails open and logs.
    """

    def __init__(
        self,
        app,
        redis_client: redis.Redis,
        requests_per_minute_ip: int = 2000,
        requests_per_minute_user: int = 300,
        window_seconds: int = 60
    ):
        super().__init__(app)
        self.redis = redis_client
        self.requests_per_minute_ip = requests_per_minute_ip
        self.requests_per_minute_user = requests_per_minute_user
        self.window_seconds = window_seconds

    def _check_rate_limit(
        self,
        key: str,
        limit: int,
        window: int
    ) -> Tuple[bool, int]:
        """
        Check rate limit using a Redis sorted set of request timestamps.

        Args:
            key: Redis key for this limit (e.g., "rate:ip:192.168.1.1")
            limit: Maximum requests allowed
            window: Time window in seconds

        Returns:
            Tuple of (is_allowed, current_count)
        """
        try:
            current_time = time.time()
            window_start = current_time - window

            pipe = self.redis.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            pipe.zadd(key, {str(current_time): current_time})
            pipe.expire(key, window + 1)
            results = pipe.execute()

            # zcard ran before the current request was added
            count = results[1]
            return count < limit, count + 1

        except redis.RedisError as e:
            logger.error(f"Redis rate limit error: {e}")
            return True, 0

    def _too_many_requests(self, scope: str, limit: int) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={
                "success": False,
                "message": f"Rate limit exceeded for {scope}. Maximum {limit} requests per minute."
            },
            headers={"Retry-After": str(self.window_seconds)}
        )

    @staticmethod
    def _client_ip(request: Request) -> str:
        if "x-forwarded-for" in request.headers:
            return request.headers["x-forwarded-for"].split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    @staticmethod
    def _user_id(request: Request) -> Optional[str]:
        try:
            caller = lookup_caller(parse_bearer(request.headers.get("authorization")))
        except AuthenticationError:
            return None
        return caller.user_id if caller else None

    async def dispatch(self, request: Request, call_next):
        """Apply IP then user limits, then track suspicious response patterns."""
        client_ip = self._client_ip(request)
        user_id = self._user_id(request)

        ip_allowed, ip_count = self._check_rate_limit(
            f"rate:ip:{client_ip}",
            self.requests_per_minute_ip,
            self.window_seconds
        )
        if not ip_allowed:
            rate_limit_exceeded_counter.add(1, {"limit_type": "ip"})
            logger.warning(
                f"Rate limit exceeded for IP {client_ip}: "
                f"{ip_count}/{self.requests_per_minute_ip} requests"
            )
            return self._too_many_requests("IP", self.requests_per_minute_ip)

        if user_id:
            user_allowed, user_count = self._check_rate_limit(
                f"rate:user:{user_id}",
                self.requests_per_minute_user,
                self.window_seconds
            )
            if not user_allowed:
                rate_limit_exceeded_counter.add(1, {"limit_type": "user"})
                logger.warning(
                    f"Rate limit exceeded for user {user_id}: "
                    f"{user_count}/{self.requests_per_minute_user} requests"
                )
                return self._too_many_requests("user", self.requests_per_minute_user)

        response = await call_next(request)

        self._detect_suspicious_activity(response.status_code, client_ip)

        return response

    def _detect_suspicious_activity(self, status_code: int, client_ip: str) -> None:
        """
        Count error responses per client IP over a five minute window.

        Patterns:
        - Credential stuffing: 5+ 401s
        - Order enumeration: 10+ 403s (e.g. walking other buyers' order ids)
        - Endpoint scanning: 10+ 404s
        - Abuse: 20+ 4xx errors
        """
        try:
            current_time = time.time()
            for matches, suffix, threshold, activity in SUSPICIOUS_PATTERNS:
                if not matches(status_code):
                    continue
                key = f"suspicious:{suffix}:{client_ip}"
                self.redis.zadd(key, {str(current_time): current_time})
                self.redis.expire(key, SUSPICIOUS_WINDOW_SECONDS + 1)

                count = self.redis.zcount(key, current_time - SUSPICIOUS_WINDOW_SECONDS, current_time)
                if count >= threshold:
                    suspicious_activity_counter.add(1, {"type": activity})
                    logger.warning(
                        f"Suspicious activity: {activity} from {client_ip} "
                        f"({count} {suffix} responses in 5 min)"
                    )

        except redis.RedisError as e:
            logger.error(f"Error detecting suspicious activity: {e}")
