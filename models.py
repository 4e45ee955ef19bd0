"""Database models for the marketplace service."""
from datetime import datetime
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Seller(Base):
    """Seller model. Each seller is linked to exactly one user account."""
    __tablename__ = "sellers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)
    shop_name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    address = Column(String)
    is_approved = Column(Boolean, default=False, nullable=False)
    rejection_reason = Column(String)
    rejected_at = Column(DateTime)
    rejected_by = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)


class Product(Base):
    """Product model."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    description = Column(String)
    price = Column(Float, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    category = Column(String)
    seller_id = Column(Integer, ForeignKey("sellers.id"), index=True, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        CheckConstraint("stock >= 0", name="check_stock_non_negative"),
    )


class Order(Base):
    """Order model.

    Items are snapshots taken at placement time and never change afterwards;
    only status and the payment sub-record are mutated later.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(String, index=True, nullable=False)
    shipping_address = Column(JSON, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String, index=True, nullable=False, default="Pending")
    seller_ids = Column(JSON, nullable=False, default=list)
    note = Column(String)

    # Payment sub-record
    payment_method = Column(String)
    payment_provider_reference = Column(String)
    payment_status = Column(String, nullable=False, default="Pending")
    paid_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    @property
    def payment(self) -> dict:
        """Payment sub-record as one mapping."""
        return {
            "method": self.payment_method,
            "provider_reference": self.payment_provider_reference,
            "paid_at": self.paid_at,
            "status": self.payment_status,
        }


class OrderItem(Base):
    """Order line item (price/name snapshot)."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    position = Column(Integer, nullable=False)
    product_id = Column(Integer, index=True, nullable=False)
    seller_id = Column(Integer, index=True, nullable=False)
    name = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    qty = Column(Integer, nullable=False)
    sub_total = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("qty >= 1", name="check_qty_positive"),
    )


class Payment(Base):
    """Payment record, kept independently of the order's payment sub-record."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True, nullable=False)
    amount = Column(Float, nullable=False)
    method = Column(String, nullable=False)
    transaction_id = Column(String, unique=True, nullable=False)
    status = Column(String, nullable=False, default="Pending")
    paid_at = Column(DateTime)
    notes = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)
