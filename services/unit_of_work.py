"""Unit of work over the marketplace store.

Every order-affecting operation runs inside one unit of work::

    with uow:
        ...
        uow.commit()

Leaving the block without ``commit()`` (early return, business error or
infrastructure failure) rolls back everything done inside it. The inventory
ledger and the order builder receive the unit of work explicitly, so the
same logic runs against SQLAlchemy in production and against
``services.memory.InMemoryUnitOfWork`` in tests.
"""
import abc
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import DuplicateSellerError, DuplicateTransactionError
from models import Order, OrderItem, Payment, Product, Seller


class ProductRepository(abc.ABC):
    @abc.abstractmethod
    def get(self, product_id: int) -> Optional[Product]:
        raise NotImplementedError

    @abc.abstractmethod
    def list(self) -> List[Product]:
        raise NotImplementedError

    @abc.abstractmethod
    def list_for_seller(self, seller_id: int) -> List[Product]:
        raise NotImplementedError

    @abc.abstractmethod
    def add(self, product: Product) -> Product:
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, product: Product) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def decrement_stock(self, product_id: int, qty: int) -> bool:
        """Take ``qty`` units if at least that many are in stock.

        The check and the write are one atomic step. Returns False when the
        product is missing or short; nothing is changed in that case.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def increment_stock(self, product_id: int, qty: int) -> bool:
        """Put ``qty`` units back. Returns False when the product is missing."""
        raise NotImplementedError


class SellerRepository(abc.ABC):
    @abc.abstractmethod
    def get(self, seller_id: int) -> Optional[Seller]:
        raise NotImplementedError

    @abc.abstractmethod
    def get_by_user(self, user_id: str) -> Optional[Seller]:
        raise NotImplementedError

    @abc.abstractmethod
    def get_by_email(self, email: str) -> Optional[Seller]:
        raise NotImplementedError

    @abc.abstractmethod
    def list(self) -> List[Seller]:
        raise NotImplementedError

    @abc.abstractmethod
    def add(self, seller: Seller) -> Seller:
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, seller: Seller) -> None:
        raise NotImplementedError


class OrderRepository(abc.ABC):
    @abc.abstractmethod
    def get(self, order_id: int, for_update: bool = False) -> Optional[Order]:
        """Load an order; ``for_update`` locks it until the unit of work ends."""
        raise NotImplementedError

    @abc.abstractmethod
    def add(self, order: Order) -> Order:
        raise NotImplementedError

    @abc.abstractmethod
    def list_for_buyer(self, buyer_id: str) -> List[Order]:
        raise NotImplementedError

    @abc.abstractmethod
    def list_for_seller(self, seller_id: int) -> List[Order]:
        raise NotImplementedError

    @abc.abstractmethod
    def list_page(
        self,
        page: int,
        limit: int,
        status: Optional[str] = None,
        seller_id: Optional[int] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None
    ) -> Tuple[int, List[Order]]:
        """Newest first. Returns ``(total matching, orders on the page)``."""
        raise NotImplementedError


class PaymentRepository(abc.ABC):
    @abc.abstractmethod
    def add(self, payment: Payment) -> Payment:
        raise NotImplementedError

    @abc.abstractmethod
    def get_by_transaction_id(self, transaction_id: str) -> Optional[Payment]:
        raise NotImplementedError

    @abc.abstractmethod
    def get_for_order(self, order_id: int, user_id: str) -> Optional[Payment]:
        raise NotImplementedError

    @abc.abstractmethod
    def list(self) -> List[Payment]:
        raise NotImplementedError


class AbstractUnitOfWork(abc.ABC):
    """Atomic grouping of repository reads and writes."""

    products: ProductRepository
    sellers: SellerRepository
    orders: OrderRepository
    payments: PaymentRepository

    def __enter__(self) -> "AbstractUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # Rolling back after a commit is a no-op
        self.rollback()

    @abc.abstractmethod
    def commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


# --- SQLAlchemy implementation ---


class SqlAlchemyProductRepository(ProductRepository):
    def __init__(self, session: Session):
        self.session = session

    def get(self, product_id: int) -> Optional[Product]:
        # Stock may have been changed by a Core UPDATE behind the identity map
        return self.session.get(Product, product_id, populate_existing=True)

    def list(self) -> List[Product]:
        return self.session.query(Product).order_by(Product.id).all()

    def list_for_seller(self, seller_id: int) -> List[Product]:
        return self.session.query(Product).filter(Product.seller_id == seller_id).order_by(Product.id).all()

    def add(self, product: Product) -> Product:
        self.session.add(product)
        self.session.flush()
        return product

    def delete(self, product: Product) -> None:
        self.session.delete(product)
        self.session.flush()

    def decrement_stock(self, product_id: int, qty: int) -> bool:
        # Row lock + predicate re-check on PostgreSQL: concurrent writers serialize here
        result = self.session.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= qty)
            .values(stock=Product.stock - qty)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def increment_stock(self, product_id: int, qty: int) -> bool:
        result = self.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + qty)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class SqlAlchemySellerRepository(SellerRepository):
    def __init__(self, session: Session):
        self.session = session

    def get(self, seller_id: int) -> Optional[Seller]:
        return self.session.get(Seller, seller_id)

    def get_by_user(self, user_id: str) -> Optional[Seller]:
        return self.session.query(Seller).filter(Seller.user_id == user_id).first()

    def get_by_email(self, email: str) -> Optional[Seller]:
        return self.session.query(Seller).filter(Seller.email == email).first()

    def list(self) -> List[Seller]:
        return self.session.query(Seller).order_by(Seller.id).all()

    def add(self, seller: Seller) -> Seller:
        self.session.add(seller)
        try:
            self.session.flush()
        except IntegrityError:
            # user_id and email are the unique columns
            raise DuplicateSellerError()
        return seller

    def delete(self, seller: Seller) -> None:
        # Pending updates to the seller's products go out before the row is removed
        self.session.flush()
        self.session.delete(seller)
        self.session.flush()


class SqlAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: Session):
        self.session = session

    def get(self, order_id: int, for_update: bool = False) -> Optional[Order]:
        if for_update:
            return self.session.get(Order, order_id, with_for_update=True, populate_existing=True)
        return self.session.get(Order, order_id)

    def add(self, order: Order) -> Order:
        self.session.add(order)
        self.session.flush()
        return order

    def _newest_first(self, query):
        return query.order_by(Order.created_at.desc(), Order.id.desc())

    def _with_seller(self, query, seller_id: int):
        order_ids = select(OrderItem.order_id).where(OrderItem.seller_id == seller_id)
        return query.filter(Order.id.in_(order_ids))

    def list_for_buyer(self, buyer_id: str) -> List[Order]:
        query = self.session.query(Order).filter(Order.buyer_id == buyer_id)
        return self._newest_first(query).all()

    def list_for_seller(self, seller_id: int) -> List[Order]:
        query = self._with_seller(self.session.query(Order), seller_id)
        return self._newest_first(query).all()

    def list_page(
        self,
        page: int,
        limit: int,
        status: Optional[str] = None,
        seller_id: Optional[int] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None
    ) -> Tuple[int, List[Order]]:
        query = self.session.query(Order)
        if status:
            query = query.filter(Order.status == status)
        if seller_id is not None:
            query = self._with_seller(query, seller_id)
        if created_from is not None:
            query = query.filter(Order.created_at >= created_from)
        if created_to is not None:
            query = query.filter(Order.created_at <= created_to)

        total = query.count()
        orders = self._newest_first(query).offset((page - 1) * limit).limit(limit).all()
        return total, orders


class SqlAlchemyPaymentRepository(PaymentRepository):
    def __init__(self, session: Session):
        self.session = session

    def add(self, payment: Payment) -> Payment:
        self.session.add(payment)
        try:
            self.session.flush()
        except IntegrityError:
            # transaction_id is the only unique column
            raise DuplicateTransactionError(payment.transaction_id)
        return payment

    def get_by_transaction_id(self, transaction_id: str) -> Optional[Payment]:
        return self.session.query(Payment).filter(Payment.transaction_id == transaction_id).first()

    def get_for_order(self, order_id: int, user_id: str) -> Optional[Payment]:
        return (
            self.session.query(Payment)
            .filter(Payment.order_id == order_id, Payment.user_id == user_id)
            .order_by(Payment.id.desc())
            .first()
        )

    def list(self) -> List[Payment]:
        return self.session.query(Payment).order_by(Payment.id.desc()).all()


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """Unit of work bound to one request-scoped SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session
        self.products = SqlAlchemyProductRepository(session)
        self.sellers = SqlAlchemySellerRepository(session)
        self.orders = SqlAlchemyOrderRepository(session)
        self.payments = SqlAlchemyPaymentRepository(session)

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
