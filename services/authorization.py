"""Resolves what a caller may do with an order."""
import logging
from dataclasses import dataclass
from enum import Flag, auto
from typing import Optional

from config import ADMIN_ROLES
from errors import ForbiddenError
from models import Order, Seller
from monitoring import authorization_denied_counter
from services.unit_of_work import SellerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Authenticated identity, as supplied by the auth layer."""
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class OrderRight(Flag):
    NONE = 0
    VIEW = auto()
    UPDATE_STATUS = auto()
    CANCEL = auto()


ALL_ORDER_RIGHTS = OrderRight.VIEW | OrderRight.UPDATE_STATUS | OrderRight.CANCEL

DENIAL_MESSAGES = {
    OrderRight.VIEW: "Not authorized to view this order",
    OrderRight.UPDATE_STATUS: "Access denied",
    OrderRight.CANCEL: "Not authorized",
}


class AuthorizationResolver:
    """
    Maps (caller, order) to the set of rights the caller holds.

    - admin/owner: everything
    - buyer who placed the order: view, cancel
    - seller present in the order: view, update status
    """

    def __init__(self, sellers: SellerRepository):
        self.sellers = sellers

    def seller_for(self, caller: Caller) -> Optional[Seller]:
        return self.sellers.get_by_user(caller.user_id)

    def resolve(self, caller: Caller, order: Order) -> OrderRight:
        if caller.is_admin:
            return ALL_ORDER_RIGHTS

        rights = OrderRight.NONE
        if order.buyer_id == caller.user_id:
            rights |= OrderRight.VIEW | OrderRight.CANCEL

        seller = self.seller_for(caller)
        if seller is not None and seller.id in order.seller_ids:
            rights |= OrderRight.VIEW | OrderRight.UPDATE_STATUS

        return rights

    def require(self, caller: Caller, order: Order, right: OrderRight) -> OrderRight:
        """Return the caller's rights, or raise ``ForbiddenError`` if ``right`` is missing."""
        rights = self.resolve(caller, order)
        if right not in rights:
            authorization_denied_counter.add(1, {"right": right.name.lower()})
            logger.warning("Order access denied", extra={
                "user_id": caller.user_id,
                "role": caller.role,
                "order_id": order.id,
                "right": right.name
            })
            raise ForbiddenError(DENIAL_MESSAGES[right])
        return rights
