"""Order management service.

Coordinates the order workflow: placement (reserve stock + create order as
one unit of work), status updates, cancellation with stock release, and
the buyer/seller/admin read paths.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from opentelemetry import trace

from config import ORDER_PAGE_SIZE_DEFAULT, ORDER_PAGE_SIZE_MAX
from errors import ForbiddenError, MarketplaceError, OrderNotFoundError
from models import Order
from monitoring import (
    order_amount_histogram,
    order_failures_counter,
    order_status_changes_counter,
    orders_cancelled_counter,
    orders_placed_counter,
)
from services.authorization import AuthorizationResolver, Caller, OrderRight
from services.inventory import InventoryLedger
from services.order_builder import OrderAggregateBuilder, OrderLine
from services.order_lifecycle import (
    OrderStatus,
    apply_status,
    ensure_cancellable,
    ensure_updatable,
    parse_status,
)
from services.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


def _as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class OrderService:
    """Service for managing orders."""

    def __init__(self, uow: AbstractUnitOfWork):
        """
        Initialize order service.

        Args:
            uow: Unit of work every operation runs in
        """
        self.uow = uow
        self.authorization = AuthorizationResolver(uow.sellers)
        self.tracer = trace.get_tracer(__name__)

    def place_order(
        self,
        caller: Caller,
        lines: List[OrderLine],
        shipping_address: dict,
        payment_method: Optional[str],
        note: Optional[str] = None
    ) -> Order:
        """
        Reserve stock for every line and create the order, atomically.

        Either all decrements and the order row commit together, or the unit
        of work rolls back and nothing is visible.

        Args:
            caller: Buyer placing the order
            lines: Cart lines
            shipping_address: Shipping address fields
            payment_method: Payment method
            note: Optional buyer note

        Returns:
            The committed order

        Raises:
            MarketplaceError: Validation, not-found or stock failures
        """
        with self.tracer.start_as_current_span("db.transaction.create_order") as span:
            span.set_attribute("user.id", caller.user_id)
            span.set_attribute("order.line_count", len(lines))

            try:
                with self.uow:
                    builder = OrderAggregateBuilder(InventoryLedger(self.uow))
                    order = builder.build(
                        buyer_id=caller.user_id,
                        lines=lines,
                        shipping_address=shipping_address,
                        payment_method=payment_method,
                        note=note
                    )
                    self.uow.orders.add(order)
                    self.uow.commit()
                    order_id = order.id
            except MarketplaceError as e:
                order_failures_counter.add(1, {"reason": type(e).__name__})
                logger.warning("Order placement rejected", extra={
                    "user_id": caller.user_id,
                    "reason": e.message
                })
                raise
            except Exception as e:
                order_failures_counter.add(1, {"reason": "unexpected"})
                logger.error("Failed to create order", extra={
                    "user_id": caller.user_id,
                    "payment_method": payment_method,
                    "error": str(e)
                })
                raise

            span.set_attribute("order.id", order_id)
            span.set_attribute("order.total_amount", order.total_amount)

        orders_placed_counter.add(1, {"payment_method": payment_method or "unspecified"})
        order_amount_histogram.record(order.total_amount, {"payment_method": payment_method or "unspecified"})

        logger.info("Order placed", extra={
            "user_id": caller.user_id,
            "order_id": order_id,
            "amount": order.total_amount,
            "item_count": len(order.items),
            "seller_ids": list(order.seller_ids)
        })
        return order

    def get_order(self, caller: Caller, order_id: int) -> Order:
        """Load one order the caller may view."""
        with self.uow:
            order = self._load(order_id)
            self.authorization.require(caller, order, OrderRight.VIEW)
            return order

    def list_my_orders(self, caller: Caller) -> List[Order]:
        """Orders placed by the caller, newest first."""
        with self.uow:
            return self.uow.orders.list_for_buyer(caller.user_id)

    def list_seller_orders(self, caller: Caller) -> List[Order]:
        """Orders that contain at least one item sold by the caller's seller account."""
        with self.uow:
            seller = self.authorization.seller_for(caller)
            if seller is None:
                raise ForbiddenError("Not a seller")
            return self.uow.orders.list_for_seller(seller.id)

    def list_all_orders(
        self,
        caller: Caller,
        page: int = 1,
        limit: int = ORDER_PAGE_SIZE_DEFAULT,
        status: Optional[str] = None,
        seller_id: Optional[int] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None
    ) -> Tuple[int, int, int, List[Order]]:
        """
        Admin listing with simple filters.

        Returns:
            Tuple of (total, page, limit, orders)
        """
        if not caller.is_admin:
            raise ForbiddenError("Access denied")

        page = max(1, page)
        limit = min(max(1, limit), ORDER_PAGE_SIZE_MAX)
        status_value = parse_status(status).value if status else None
        created_from = _as_naive_utc(created_from)
        created_to = _as_naive_utc(created_to)

        with self.uow:
            total, orders = self.uow.orders.list_page(
                page,
                limit,
                status=status_value,
                seller_id=seller_id,
                created_from=created_from,
                created_to=created_to
            )
            return total, page, limit, orders

    def update_status(
        self,
        caller: Caller,
        order_id: int,
        status: Optional[str],
        provider_reference: Optional[str] = None
    ) -> Order:
        """
        Set an order's status.

        Setting ``Cancelled`` releases stock exactly like ``cancel_order``.

        Raises:
            InvalidStatusValueError: If status is not one of the seven values
            OrderNotFoundError: If the order does not exist
            ForbiddenError: If the caller is neither admin nor a seller in the order
            OrderAlreadyCancelledError: If the order is already cancelled
        """
        new_status = parse_status(status)

        with self.tracer.start_as_current_span("db.transaction.update_order_status") as span:
            span.set_attribute("order.id", order_id)
            span.set_attribute("order.status", new_status.value)

            with self.uow:
                order = self._load(order_id, for_update=True)
                self.authorization.require(caller, order, OrderRight.UPDATE_STATUS)
                ensure_updatable(order)

                previous = order.status
                if new_status is OrderStatus.CANCELLED:
                    self._release_stock(order)
                apply_status(order, new_status, provider_reference)
                self.uow.commit()

        order_status_changes_counter.add(1, {"status": new_status.value})
        if new_status is OrderStatus.CANCELLED:
            orders_cancelled_counter.add(1, {"via": "status_update"})

        logger.info("Order status updated", extra={
            "order_id": order_id,
            "user_id": caller.user_id,
            "from_status": previous,
            "to_status": new_status.value,
            "provider_reference": provider_reference
        })
        return order

    def cancel_order(self, caller: Caller, order_id: int) -> Order:
        """
        Cancel an order and put its stock back.

        Buyers may cancel until the order ships; admins at any stage. An
        order is cancelled at most once, so stock is released at most once.

        Raises:
            OrderNotFoundError: If the order does not exist
            ForbiddenError: If the caller is neither the buyer nor an admin
            IllegalCancellationError: If a buyer cancels a shipped/delivered order
            OrderAlreadyCancelledError: If the order is already cancelled
        """
        with self.tracer.start_as_current_span("db.transaction.cancel_order") as span:
            span.set_attribute("order.id", order_id)

            with self.uow:
                order = self._load(order_id, for_update=True)
                self.authorization.require(caller, order, OrderRight.CANCEL)
                ensure_cancellable(order, by_admin=caller.is_admin)

                previous = order.status
                self._release_stock(order)
                apply_status(order, OrderStatus.CANCELLED)
                self.uow.commit()

        orders_cancelled_counter.add(1, {"via": "cancel"})
        logger.info("Order cancelled", extra={
            "order_id": order_id,
            "user_id": caller.user_id,
            "from_status": previous,
            "released_units": sum(item.qty for item in order.items)
        })
        return order

    def _load(self, order_id: int, for_update: bool = False) -> Order:
        order = self.uow.orders.get(order_id, for_update=for_update)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _release_stock(self, order: Order) -> None:
        ledger = InventoryLedger(self.uow)
        for item in order.items:
            ledger.release(item.product_id, item.qty)
