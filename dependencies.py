"""Dependency injection for services."""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from services.catalog_service import ProductCatalog
from services.memory import InMemoryUnitOfWork
from services.order_service import OrderService
from services.payment_service import PaymentService
from services.seller_service import SellerDirectory
from services.unit_of_work import AbstractUnitOfWork, SqlAlchemyUnitOfWork


def get_unit_of_work(request: Request, db: Session = Depends(get_db)) -> AbstractUnitOfWork:
    """Get a unit of work for this request (in-memory store when one is attached to the app)."""
    store = getattr(request.app.state, "memory_store", None)
    if store is not None:
        return InMemoryUnitOfWork(store)
    return SqlAlchemyUnitOfWork(db)


def get_order_service(uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> OrderService:
    """Get order service instance."""
    return OrderService(uow)


def get_payment_service(uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> PaymentService:
    """Get payment service instance."""
    return PaymentService(uow)


def get_seller_directory(uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> SellerDirectory:
    """Get seller directory instance."""
    return SellerDirectory(uow)


def get_product_catalog(uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> ProductCatalog:
    """Get product catalog instance."""
    return ProductCatalog(uow)
