"""Database connection and session management."""
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Any, Dict, Generator
import logging

from config import DATABASE_URL
from models import Base, Product, Seller
from services.unit_of_work import AbstractUnitOfWork, SqlAlchemyUnitOfWork

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> Dict[str, Any]:
    """Connection pool settings for the configured database."""
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        # Sessions are used from the threadpool
        options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if parsed.database in (None, "", ":memory:"):
            # An in-memory database exists only on its one connection
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_size": 10,
        "max_overflow": 20,  # Burst traffic on checkout
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_timeout": 30,  # Wait max 30 seconds for a connection
    }


# Create engine with connection pool settings
engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


DEMO_SELLERS = [
    {
        "user_id": "user-seller-1",
        "name": "Ayesha Khan",
        "email": "ayesha@gadgethub.example",
        "shop_name": "Gadget Hub",
        "phone": "+92-300-0000001",
        "is_approved": True,
    },
    {
        "user_id": "user-seller-2",
        "name": "Bilal Ahmed",
        "email": "bilal@homestore.example",
        "shop_name": "Home Store",
        "phone": "+92-300-0000002",
        "is_approved": True,
    },
]

DEMO_PRODUCTS = [
    # (seller index, name, price, stock, category)
    (0, "Laptop", 999.99, 50, "Electronics"),
    (0, "Smartphone", 599.99, 100, "Electronics"),
    (0, "Headphones", 99.99, 200, "Electronics"),
    (1, "Desk Chair", 199.99, 30, "Furniture"),
    (1, "Table Lamp", 39.99, 120, "Furniture"),
    (1, "Bookshelf", 149.99, 25, "Furniture"),
]


def seed_demo_data(uow: AbstractUnitOfWork) -> None:
    """Insert demo sellers and products into an empty catalog."""
    with uow:
        if uow.products.list():
            return

        sellers = [uow.sellers.add(Seller(**data)) for data in DEMO_SELLERS]
        for idx, name, price, stock, category in DEMO_PRODUCTS:
            uow.products.add(Product(
                name=name,
                price=price,
                stock=stock,
                category=category,
                seller_id=sellers[idx].id
            ))
        uow.commit()

    logger.info("Seeded store with sample sellers and products", extra={
        "sellers": len(DEMO_SELLERS),
        "products": len(DEMO_PRODUCTS)
    })


def init_db(seed: bool = True) -> None:
    """Initialize database tables and seed data."""
    Base.metadata.create_all(bind=engine)

    if not seed:
        return

    db = SessionLocal()
    try:
        seed_demo_data(SqlAlchemyUnitOfWork(db))
    finally:
        db.close()
