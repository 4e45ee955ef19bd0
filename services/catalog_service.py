"""Product catalog service."""
import logging
from typing import Any, Dict, List, Optional

from opentelemetry import trace

from errors import ForbiddenError, ProductNotFoundError, ValidationError
from models import Product
from services.authorization import Caller
from services.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "description", "price", "stock", "category")


class ProductCatalog:
    """Read and maintain products. Sellers manage their own products only."""

    def __init__(self, uow: AbstractUnitOfWork):
        self.uow = uow

    def list_products(self) -> List[Product]:
        with self.uow:
            products = self.uow.products.list()

        trace.get_current_span().set_attribute("product.count", len(products))
        return products

    def get_product(self, product_id: int) -> Product:
        with self.uow:
            product = self.uow.products.get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            return product

    def list_seller_products(self, caller: Caller) -> List[Product]:
        """Products owned by the caller's seller account."""
        with self.uow:
            seller = self.uow.sellers.get_by_user(caller.user_id)
            if seller is None:
                raise ForbiddenError("Not authorized")
            products = self.uow.products.list_for_seller(seller.id)

        trace.get_current_span().set_attribute("product.count", len(products))
        return products

    def create_product(
        self,
        caller: Caller,
        name: str,
        price: float,
        stock: int,
        description: Optional[str] = None,
        category: Optional[str] = None
    ) -> Product:
        """
        Add a product owned by the caller's seller account.

        Raises:
            ForbiddenError: If the caller has no seller account
            ValidationError: If price or stock is negative
        """
        self._validate(price=price, stock=stock)

        with self.uow:
            seller = self.uow.sellers.get_by_user(caller.user_id)
            if seller is None:
                raise ForbiddenError("Only sellers can add products")

            product = Product(
                name=name,
                description=description,
                price=price,
                stock=stock,
                category=category,
                seller_id=seller.id
            )
            self.uow.products.add(product)
            self.uow.commit()

        logger.info("Product created", extra={
            "product_id": product.id,
            "seller_id": seller.id,
            "stock": stock
        })
        return product

    def update_product(self, caller: Caller, product_id: int, changes: Dict[str, Any]) -> Product:
        """
        Update catalog fields of a product owned by the caller.

        Orders placed earlier keep their own name/price snapshot.

        Raises:
            ProductNotFoundError: If the product does not exist
            ForbiddenError: If the caller's seller account does not own it
        """
        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
        self._validate(price=changes.get("price"), stock=changes.get("stock"))

        with self.uow:
            product = self.uow.products.get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)

            seller = self.uow.sellers.get_by_user(caller.user_id)
            if seller is None or product.seller_id != seller.id:
                raise ForbiddenError("Not authorized")

            for field, value in changes.items():
                setattr(product, field, value)
            self.uow.commit()

        logger.info("Product updated", extra={
            "product_id": product_id,
            "fields": sorted(changes)
        })
        return product

    def delete_product(self, caller: Caller, product_id: int) -> None:
        """
        Remove a product owned by the caller from the catalog.

        Order items keep their own snapshot and are not affected.

        Raises:
            ProductNotFoundError: If the product does not exist
            ForbiddenError: If the caller's seller account does not own it
        """
        with self.uow:
            product = self.uow.products.get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)

            seller = self.uow.sellers.get_by_user(caller.user_id)
            if seller is None or product.seller_id != seller.id:
                raise ForbiddenError("Not authorized")

            self.uow.products.delete(product)
            self.uow.commit()

        logger.info("Product deleted", extra={"product_id": product_id, "seller_id": seller.id})

    @staticmethod
    def _validate(price: Optional[float] = None, stock: Optional[int] = None) -> None:
        if price is not None and price < 0:
            raise ValidationError("Price must be non-negative")
        if stock is not None and stock < 0:
            raise ValidationError("Stock must be a non-negative integer")
