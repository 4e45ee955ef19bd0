"""Builds an order aggregate from a cart."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from errors import EmptyOrderError, InvalidItemError, MissingSellerAssignmentError, ValidationError
from models import Order, OrderItem
from services.inventory import InventoryLedger
from services.order_lifecycle import OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = ("full_name", "phone", "address_line1", "city", "postal_code", "country")
ADDRESS_FIELDS = REQUIRED_ADDRESS_FIELDS + ("address_line2",)


@dataclass(frozen=True)
class OrderLine:
    """One cart line as submitted by the buyer."""
    product_id: Optional[int]
    qty: Optional[int]


class OrderAggregateBuilder:
    """
    Turns cart lines into an ``Order`` with snapshotted items.

    Each line is reserved through the ledger in input order; a product id
    that appears on several lines is reserved once per line. The builder
    never commits: if it raises, the caller's unit of work rolls back every
    reservation made so far.
    """

    def __init__(self, ledger: InventoryLedger):
        self.ledger = ledger

    def build(
        self,
        buyer_id: str,
        lines: List[OrderLine],
        shipping_address: Dict[str, Any],
        payment_method: Optional[str],
        note: Optional[str] = None
    ) -> Order:
        """
        Reserve stock for every line and assemble the order.

        Args:
            buyer_id: User placing the order
            lines: Cart lines, in order
            shipping_address: Address fields; all required except address_line2
            payment_method: Payment method chosen by the buyer
            note: Optional buyer note

        Returns:
            Unsaved ``Order`` in status Pending

        Raises:
            EmptyOrderError: If there are no lines
            InvalidItemError: If a line lacks a product id or has qty < 1
            ValidationError: If a required address field is missing
            ProductNotFoundError: If a product does not exist
            InsufficientStockError: If a product is short
            MissingSellerAssignmentError: If a product has no seller
        """
        self._validate(lines, shipping_address)

        items = []
        total_amount = 0.0
        seller_ids = []

        for position, line in enumerate(lines):
            snapshot = self.ledger.reserve(line.product_id, line.qty)
            if snapshot.seller_id is None:
                raise MissingSellerAssignmentError(snapshot.product_id, snapshot.name)

            sub_total = snapshot.price * line.qty
            total_amount += sub_total
            if snapshot.seller_id not in seller_ids:
                seller_ids.append(snapshot.seller_id)

            items.append(OrderItem(
                position=position,
                product_id=snapshot.product_id,
                seller_id=snapshot.seller_id,
                name=snapshot.name,
                price=snapshot.price,
                qty=line.qty,
                sub_total=sub_total
            ))

        now = datetime.utcnow()
        order = Order(
            buyer_id=buyer_id,
            items=items,
            shipping_address={field: shipping_address.get(field) for field in ADDRESS_FIELDS},
            total_amount=total_amount,
            status=OrderStatus.PENDING.value,
            seller_ids=seller_ids,
            note=note,
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now
        )

        logger.debug("Order aggregate built", extra={
            "buyer_id": buyer_id,
            "item_count": len(items),
            "seller_count": len(seller_ids),
            "total_amount": total_amount
        })
        return order

    def _validate(self, lines: List[OrderLine], shipping_address: Dict[str, Any]) -> None:
        # Everything here is checked before the first reservation
        if not lines:
            raise EmptyOrderError()

        for position, line in enumerate(lines):
            if line.product_id is None or line.qty is None or line.qty < 1:
                raise InvalidItemError(position)

        missing = [field for field in REQUIRED_ADDRESS_FIELDS if not shipping_address.get(field)]
        if missing:
            raise ValidationError(f"Shipping address is missing: {', '.join(missing)}")
