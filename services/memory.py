"""In-process store and unit of work.

Used by the test suite and by ``STORE_BACKEND=memory`` demo runs. Entities
are the regular ORM classes, kept transient (never attached to a session).

A unit of work holds the store lock from ``__enter__`` to ``__exit__``, so
units of work are serializable. Repositories report every entity they hand
out, insert or remove to their unit of work. The first time an entity is
seen, its column values are copied; rollback puts those values back and
undoes the inserts and removals. Entities the unit of work never reached
are not copied.
"""
import copy
import itertools
import threading
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy import inspect

from errors import DuplicateSellerError, DuplicateTransactionError
from models import Order, Payment, Product, Seller
from services.unit_of_work import (
    AbstractUnitOfWork,
    OrderRepository,
    PaymentRepository,
    ProductRepository,
    SellerRepository,
)

EntityT = TypeVar("EntityT")


class InMemoryStore:
    """Tables keyed by primary key, guarded by one re-entrant lock."""

    def __init__(self):
        self.products: Dict[int, Product] = {}
        self.sellers: Dict[int, Seller] = {}
        self.orders: Dict[int, Order] = {}
        self.payments: Dict[int, Payment] = {}
        self.lock = threading.RLock()
        self._ids = defaultdict(lambda: itertools.count(1))

    def next_id(self, table: str) -> int:
        return next(self._ids[table])


def _column_values(entity: Any) -> Dict[str, Any]:
    mapper = inspect(type(entity))
    return {attr.key: copy.deepcopy(getattr(entity, attr.key)) for attr in mapper.column_attrs}


def _newest_first(orders: List[Order]) -> List[Order]:
    return sorted(orders, key=lambda o: (o.created_at, o.id), reverse=True)


class InMemoryProductRepository(ProductRepository):
    def __init__(self, uow: "InMemoryUnitOfWork"):
        self.uow = uow
        self.store = uow.store

    def get(self, product_id: int) -> Optional[Product]:
        return self.uow.track(self.store.products.get(product_id))

    def list(self) -> List[Product]:
        return [self.uow.track(self.store.products[k]) for k in sorted(self.store.products)]

    def list_for_seller(self, seller_id: int) -> List[Product]:
        return [
            self.uow.track(product)
            for _, product in sorted(self.store.products.items())
            if product.seller_id == seller_id
        ]

    def add(self, product: Product) -> Product:
        product.id = self.store.next_id("products")
        if product.created_at is None:
            product.created_at = datetime.utcnow()
        self.uow.insert(self.store.products, product)
        return product

    def delete(self, product: Product) -> None:
        self.uow.remove(self.store.products, product.id)

    def decrement_stock(self, product_id: int, qty: int) -> bool:
        product = self.get(product_id)
        if product is None or product.stock < qty:
            return False
        product.stock -= qty
        return True

    def increment_stock(self, product_id: int, qty: int) -> bool:
        product = self.get(product_id)
        if product is None:
            return False
        product.stock += qty
        return True


class InMemorySellerRepository(SellerRepository):
    def __init__(self, uow: "InMemoryUnitOfWork"):
        self.uow = uow
        self.store = uow.store

    def get(self, seller_id: int) -> Optional[Seller]:
        return self.uow.track(self.store.sellers.get(seller_id))

    def get_by_user(self, user_id: str) -> Optional[Seller]:
        seller = next((s for s in self.store.sellers.values() if s.user_id == user_id), None)
        return self.uow.track(seller)

    def get_by_email(self, email: str) -> Optional[Seller]:
        seller = next((s for s in self.store.sellers.values() if s.email == email), None)
        return self.uow.track(seller)

    def list(self) -> List[Seller]:
        return [self.uow.track(self.store.sellers[k]) for k in sorted(self.store.sellers)]

    def add(self, seller: Seller) -> Seller:
        if self.get_by_user(seller.user_id) or self.get_by_email(seller.email):
            raise DuplicateSellerError()
        seller.id = self.store.next_id("sellers")
        if seller.is_approved is None:
            seller.is_approved = False
        if seller.created_at is None:
            seller.created_at = datetime.utcnow()
        self.uow.insert(self.store.sellers, seller)
        return seller

    def delete(self, seller: Seller) -> None:
        self.uow.remove(self.store.sellers, seller.id)


class InMemoryOrderRepository(OrderRepository):
    def __init__(self, uow: "InMemoryUnitOfWork"):
        self.uow = uow
        self.store = uow.store

    def get(self, order_id: int, for_update: bool = False) -> Optional[Order]:
        # The unit of work already holds the store lock
        return self.uow.track(self.store.orders.get(order_id))

    def add(self, order: Order) -> Order:
        now = datetime.utcnow()
        order.id = self.store.next_id("orders")
        order.created_at = order.created_at or now
        order.updated_at = order.updated_at or now
        for item in order.items:
            item.id = self.store.next_id("order_items")
            item.order_id = order.id
        self.uow.insert(self.store.orders, order)
        return order

    def _tracked(self, orders: List[Order]) -> List[Order]:
        return [self.uow.track(o) for o in orders]

    def list_for_buyer(self, buyer_id: str) -> List[Order]:
        return self._tracked(_newest_first([o for o in self.store.orders.values() if o.buyer_id == buyer_id]))

    def list_for_seller(self, seller_id: int) -> List[Order]:
        return self._tracked(_newest_first([
            o for o in self.store.orders.values()
            if any(item.seller_id == seller_id for item in o.items)
        ]))

    def list_page(
        self,
        page: int,
        limit: int,
        status: Optional[str] = None,
        seller_id: Optional[int] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None
    ) -> Tuple[int, List[Order]]:
        orders = list(self.store.orders.values())
        if status:
            orders = [o for o in orders if o.status == status]
        if seller_id is not None:
            orders = [o for o in orders if any(item.seller_id == seller_id for item in o.items)]
        if created_from is not None:
            orders = [o for o in orders if o.created_at >= created_from]
        if created_to is not None:
            orders = [o for o in orders if o.created_at <= created_to]

        start = (page - 1) * limit
        return len(orders), self._tracked(_newest_first(orders)[start:start + limit])


class InMemoryPaymentRepository(PaymentRepository):
    def __init__(self, uow: "InMemoryUnitOfWork"):
        self.uow = uow
        self.store = uow.store

    def add(self, payment: Payment) -> Payment:
        if self.get_by_transaction_id(payment.transaction_id) is not None:
            raise DuplicateTransactionError(payment.transaction_id)
        payment.id = self.store.next_id("payments")
        if payment.created_at is None:
            payment.created_at = datetime.utcnow()
        self.uow.insert(self.store.payments, payment)
        return payment

    def get_by_transaction_id(self, transaction_id: str) -> Optional[Payment]:
        payment = next((p for p in self.store.payments.values() if p.transaction_id == transaction_id), None)
        return self.uow.track(payment)

    def get_for_order(self, order_id: int, user_id: str) -> Optional[Payment]:
        matches = [
            p for p in self.store.payments.values()
            if p.order_id == order_id and p.user_id == user_id
        ]
        return self.uow.track(max(matches, key=lambda p: p.id, default=None))

    def list(self) -> List[Payment]:
        return [self.uow.track(p) for p in sorted(self.store.payments.values(), key=lambda p: p.id, reverse=True)]


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """Serializable unit of work over an ``InMemoryStore``."""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.products = InMemoryProductRepository(self)
        self.sellers = InMemorySellerRepository(self)
        self.orders = InMemoryOrderRepository(self)
        self.payments = InMemoryPaymentRepository(self)
        self._reset_changes()

    def __enter__(self) -> "InMemoryUnitOfWork":
        self.store.lock.acquire()
        self._reset_changes()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            super().__exit__(exc_type, exc, tb)
        finally:
            self.store.lock.release()

    def _reset_changes(self) -> None:
        # id(entity) -> (entity, column values when first seen)
        self._originals: Dict[int, Tuple[Any, Dict[str, Any]]] = {}
        self._inserted: List[Tuple[Dict[int, Any], int]] = []
        self._removed: List[Tuple[Dict[int, Any], int, Any]] = []

    def track(self, entity: Optional[EntityT]) -> Optional[EntityT]:
        if entity is not None and id(entity) not in self._originals:
            self._originals[id(entity)] = (entity, _column_values(entity))
        return entity

    def insert(self, rows: Dict[int, Any], entity: Any) -> None:
        rows[entity.id] = entity
        self._inserted.append((rows, entity.id))

    def remove(self, rows: Dict[int, Any], key: int) -> None:
        entity = rows.pop(key, None)
        if entity is not None:
            self.track(entity)
            self._removed.append((rows, key, entity))

    def commit(self) -> None:
        self._reset_changes()

    def rollback(self) -> None:
        for rows, key, entity in reversed(self._removed):
            rows[key] = entity
        for rows, key in reversed(self._inserted):
            rows.pop(key, None)
        for entity, columns in self._originals.values():
            for key, value in columns.items():
                setattr(entity, key, value)
        self._reset_changes()
