"""Authentication: bearer token -> ``Caller``."""
from typing import Optional
from fastapi import Header
import logging

from config import API_TOKENS
from errors import AuthenticationError
from monitoring import auth_failures_counter, auth_attempts_counter
from services.authorization import Caller

logger = logging.getLogger(__name__)

# Failure reason (metric label) -> response message
FAILURE_MESSAGES = {
    "missing_header": "No token, authorization denied",
    "invalid_format": "Invalid authorization header format",
    "invalid_token": "Token is not valid",
}


def _failure(reason: str) -> AuthenticationError:
    return AuthenticationError(reason, FAILURE_MESSAGES[reason])


def _shorten(value: Optional[str], keep: int) -> Optional[str]:
    if value is None or len(value) <= keep:
        return value
    return value[:keep] + "..."


def parse_bearer(authorization: Optional[str]) -> str:
    """
    Token from an ``Authorization: Bearer <token>`` header value.

    Raises:
        AuthenticationError: If the header is missing or not a bearer token
    """
    if authorization is None:
        raise _failure("missing_header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _failure("invalid_format")
    return parts[1]


def lookup_caller(token: str) -> Optional[Caller]:
    """Identity registered for an API token, or None for unknown tokens."""
    identity = API_TOKENS.get(token)
    if identity is None:
        return None
    return Caller(user_id=identity["user_id"], role=identity.get("role", "User"))


def authenticate(authorization: Optional[str]) -> Caller:
    """
    Resolve the caller behind an Authorization header.

    Every attempt and every failure is counted; failures are logged with
    the reason and a shortened header or token.

    Raises:
        AuthenticationError: If no known identity can be resolved
    """
    auth_attempts_counter.add(1, {"type": "bearer_token"})

    token = None
    try:
        token = parse_bearer(authorization)
        caller = lookup_caller(token)
        if caller is None:
            raise _failure("invalid_token")
    except AuthenticationError as e:
        auth_failures_counter.add(1, {"reason": e.reason})
        logger.warning(f"Authentication failed: {e.message}", extra={
            "reason": e.reason,
            "auth_header": _shorten(authorization, 20) if token is None else None,
            "token_prefix": _shorten(token, 8)
        })
        raise

    logger.debug("Authentication successful", extra={"user_id": caller.user_id, "role": caller.role})
    return caller


def get_caller(authorization: Optional[str] = Header(None)) -> Caller:
    """FastAPI dependency: the authenticated caller's identity and role."""
    return authenticate(authorization)
