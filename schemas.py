"""Pydantic schemas for request/response validation.

JSON bodies use camelCase keys (``totalAmount``, ``shippingAddress``); both
camelCase and snake_case are accepted on input.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional


class ApiModel(BaseModel):
    """Base schema: camelCase aliases, readable from ORM objects."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Orders ---


class OrderLineRequest(ApiModel):
    """One cart line. Item-level rules are enforced by the order builder."""
    product_id: Optional[int] = None
    qty: Optional[int] = None


class ShippingAddress(ApiModel):
    """Shipping address; everything but address line 2 is required."""
    full_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    address_line1: str = Field(min_length=1)
    address_line2: Optional[str] = None
    city: str = Field(min_length=1)
    postal_code: str = Field(min_length=1)
    country: str = Field(min_length=1)


class CreateOrderRequest(ApiModel):
    """Schema for order placement request."""
    items: List[OrderLineRequest] = Field(default_factory=list)
    shipping_address: ShippingAddress
    payment_method: Optional[str] = None
    note: Optional[str] = None


class UpdateOrderStatusRequest(ApiModel):
    """Schema for order status update request."""
    status: Optional[str] = None
    provider_reference: Optional[str] = None


class OrderItemResponse(ApiModel):
    """Schema for an order item snapshot."""
    product_id: int
    seller_id: int
    name: str
    price: float
    qty: int
    sub_total: float


class OrderPaymentResponse(ApiModel):
    """Schema for the payment sub-record of an order."""
    method: Optional[str] = None
    provider_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    status: str


class OrderResponse(ApiModel):
    """Schema for order response."""
    id: int
    buyer_id: str
    items: List[OrderItemResponse]
    shipping_address: ShippingAddress
    payment: OrderPaymentResponse
    total_amount: float
    status: str
    seller_ids: List[int]
    note: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderEnvelope(ApiModel):
    success: bool = True
    order: OrderResponse


class CancelOrderResponse(ApiModel):
    success: bool = True
    message: str
    order: OrderResponse


class OrdersListResponse(ApiModel):
    """Schema for orders list response."""
    success: bool = True
    orders: List[OrderResponse]


class PageMeta(ApiModel):
    total: int
    page: int
    limit: int


class PaginatedOrdersResponse(ApiModel):
    """Schema for the admin order listing."""
    success: bool = True
    meta: PageMeta
    orders: List[OrderResponse]


# --- Products ---


class ProductCreate(ApiModel):
    """Schema for creating a product."""
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price: float = Field(ge=0)
    stock: int = Field(ge=0)
    category: Optional[str] = None


class ProductUpdate(ApiModel):
    """Schema for updating a product; omitted fields are left unchanged."""
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None


class ProductResponse(ApiModel):
    """Schema for product response."""
    id: int
    name: str
    description: Optional[str] = None
    price: float
    stock: int
    category: Optional[str] = None
    seller_id: Optional[int] = None


class ProductEnvelope(ApiModel):
    success: bool = True
    product: ProductResponse


class ProductsListResponse(ApiModel):
    success: bool = True
    products: List[ProductResponse]


class MessageResponse(ApiModel):
    """Envelope for operations that return no record."""
    success: bool = True
    message: str


# --- Sellers ---


class SellerCreate(ApiModel):
    """Schema for a seller registration request."""
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    shop_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    address: Optional[str] = None


class SellerResponse(ApiModel):
    """Schema for seller response."""
    id: int
    user_id: str
    name: str
    email: str
    shop_name: str
    phone: str
    address: Optional[str] = None
    is_approved: bool
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None


class SellerUpdate(ApiModel):
    """Schema for updating a seller profile; omitted fields are left unchanged."""
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, min_length=3)
    shop_name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = Field(default=None, min_length=1)
    address: Optional[str] = None


class SellerReject(ApiModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class SellerEnvelope(ApiModel):
    success: bool = True
    seller: SellerResponse


class SellersListResponse(ApiModel):
    success: bool = True
    sellers: List[SellerResponse]


# --- Payments ---


class PaymentCreate(ApiModel):
    """Schema for recording a payment."""
    order_id: int
    amount: float
    method: str
    transaction_id: str = Field(min_length=1)
    notes: Optional[str] = None


class PaymentResponse(ApiModel):
    """Schema for payment response."""
    id: int
    user_id: str
    order_id: int
    amount: float
    method: str
    transaction_id: str
    status: str
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None


class PaymentEnvelope(ApiModel):
    success: bool = True
    payment: PaymentResponse


class PaymentsListResponse(ApiModel):
    success: bool = True
    payments: List[PaymentResponse]
