"""Inventory ledger: per-product stock reservation and release."""
import logging
from dataclasses import dataclass
from typing import Optional

from opentelemetry import trace

from errors import InsufficientStockError, ProductNotFoundError
from monitoring import stock_reserved_counter, stock_released_counter
from services.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductSnapshot:
    """Name, price and owner of a product at the moment it was reserved."""
    product_id: int
    seller_id: Optional[int]
    name: str
    price: float


class InventoryLedger:
    """Stock operations scoped to an active unit of work.

    Nothing here commits; the caller's unit of work decides whether the
    changes become visible.
    """

    def __init__(self, uow: AbstractUnitOfWork):
        self.uow = uow
        self.tracer = trace.get_tracer(__name__)

    def reserve(self, product_id: int, qty: int) -> ProductSnapshot:
        """
        Take ``qty`` units of a product.

        Args:
            product_id: Product identifier
            qty: Units to take

        Returns:
            Snapshot of the product's name, price and seller

        Raises:
            ProductNotFoundError: If the product does not exist
            InsufficientStockError: If fewer than ``qty`` units are in stock
        """
        with self.tracer.start_as_current_span("inventory.reserve") as span:
            span.set_attribute("product.id", product_id)
            span.set_attribute("quantity", qty)

            if not self.uow.products.decrement_stock(product_id, qty):
                product = self.uow.products.get(product_id)
                if product is None:
                    raise ProductNotFoundError(product_id)
                span.set_attribute("product.stock.available", product.stock)
                logger.info("Insufficient stock", extra={
                    "product_id": product_id,
                    "requested": qty,
                    "available": product.stock
                })
                raise InsufficientStockError(product.id, product.name, qty, product.stock)

            product = self.uow.products.get(product_id)
            span.set_attribute("product.stock.after", product.stock)
            stock_reserved_counter.add(qty)

            return ProductSnapshot(
                product_id=product.id,
                seller_id=product.seller_id,
                name=product.name,
                price=product.price
            )

    def release(self, product_id: int, qty: int) -> None:
        """
        Put back ``qty`` units previously taken by ``reserve``.

        Only cancellation calls this, once per order, guarded by the order's status.

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        with self.tracer.start_as_current_span("inventory.release") as span:
            span.set_attribute("product.id", product_id)
            span.set_attribute("quantity", qty)

            if not self.uow.products.increment_stock(product_id, qty):
                raise ProductNotFoundError(product_id)
            stock_released_counter.add(qty)
