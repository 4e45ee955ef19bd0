"""Order lifecycle: statuses and the rules for moving between them.

Status updates are deliberately permissive: an authorized caller may set any
of the seven statuses. Two moves are guarded:

* cancellation, which releases stock and is only open to the buyer before
  the order ships (admins may cancel at any stage);
* anything out of ``Cancelled``. A cancelled order has released its stock
  and stays cancelled.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from errors import IllegalCancellationError, InvalidStatusValueError, OrderAlreadyCancelledError
from models import Order


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class PaymentStatus(str, Enum):
    """Status of the payment sub-record carried on an order."""
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"


# Buyers can no longer cancel once the order reaches one of these
BUYER_FINAL_STATUSES = frozenset({
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
})


def parse_status(value: Optional[str]) -> OrderStatus:
    """Map a raw status string onto ``OrderStatus``."""
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidStatusValueError(value)


def current_status(order: Order) -> OrderStatus:
    return OrderStatus(order.status)


def ensure_updatable(order: Order) -> None:
    if current_status(order) is OrderStatus.CANCELLED:
        raise OrderAlreadyCancelledError(order.id)


def ensure_cancellable(order: Order, by_admin: bool) -> None:
    status = current_status(order)
    if status is OrderStatus.CANCELLED:
        raise OrderAlreadyCancelledError(order.id)
    if not by_admin and status in BUYER_FINAL_STATUSES:
        raise IllegalCancellationError(order.id, status.value)


def apply_status(
    order: Order,
    status: OrderStatus,
    provider_reference: Optional[str] = None,
    now: Optional[datetime] = None
) -> None:
    """
    Set the order status and thread payment-provider data through.

    The payment sub-record only flips to ``Paid`` (with paid-at stamped)
    when a provider reference accompanies a move to exactly ``Paid``.
    """
    now = now or datetime.utcnow()
    order.status = status.value
    if provider_reference:
        order.payment_provider_reference = provider_reference
        if status is OrderStatus.PAID:
            order.payment_status = PaymentStatus.PAID.value
            order.paid_at = now
    order.updated_at = now
