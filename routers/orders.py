"""Orders API router."""
from datetime import datetime
from fastapi import APIRouter, Depends, Path, Query
from typing import Optional

from auth import get_caller
from config import ORDER_PAGE_SIZE_DEFAULT
from dependencies import get_order_service
from schemas import (
    CancelOrderResponse,
    CreateOrderRequest,
    OrderEnvelope,
    OrderResponse,
    OrdersListResponse,
    PaginatedOrdersResponse,
    UpdateOrderStatusRequest,
)
from services.authorization import Caller
from services.order_builder import OrderLine
from services.order_service import OrderService

router = APIRouter(prefix="/api/order", tags=["orders"])


def _orders(orders):
    return [OrderResponse.model_validate(order) for order in orders]


@router.post("", status_code=201, response_model=OrderEnvelope)
def create_order(
    request: CreateOrderRequest,
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service)
):
    """Place an order from cart lines - requires authentication."""
    order = order_service.place_order(
        caller=caller,
        lines=[OrderLine(product_id=item.product_id, qty=item.qty) for item in request.items],
        shipping_address=request.shipping_address.model_dump(),
        payment_method=request.payment_method,
        note=request.note
    )
    return {"success": True, "order": OrderResponse.model_validate(order)}


@router.get("/my", response_model=OrdersListResponse)
def get_my_orders(
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service)
):
    """Get the caller's orders, newest first."""
    return {"success": True, "orders": _orders(order_service.list_my_orders(caller))}


@router.get("/seller/my", response_model=OrdersListResponse)
def get_orders_for_seller(
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service)
):
    """Get orders containing products of the caller's seller account."""
    return {"success": True, "orders": _orders(order_service.list_seller_orders(caller))}


@router.get("", response_model=PaginatedOrdersResponse)
def get_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(ORDER_PAGE_SIZE_DEFAULT, ge=1),
    status: Optional[str] = Query(None),
    seller_id: Optional[int] = Query(None, alias="sellerId"),
    created_from: Optional[datetime] = Query(None, alias="from"),
    created_to: Optional[datetime] = Query(None, alias="to"),
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service)
):
    """List all orders with simple filters - admin/owner only."""
    total, page, limit, orders = order_service.list_all_orders(
        caller,
        page=page,
        limit=limit,
        status=status,
        seller_id=seller_id,
        created_from=created_from,
        created_to=created_to
    )
    return {
        "success": True,
        "meta": {"total": total, "page": page, "limit": limit},
        "orders": _orders(orders)
    }


@router.get("/{order_id}", response_model=OrderEnvelope)
def get_order(
    order_id: int = Path(..., description="Order ID"),
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service)
):
    """Get one order - buyer, a seller in the order, or admin/owner."""
    order = order_service.get_order(caller, order_id)
    return {"success": True, "order": OrderResponse.model_validate(order)}


@router.put("/{order_id}/status", response_model=OrderEnvelope)
def update_order_status(
    request: UpdateOrderStatusRequest,
    order_id: int = Path(..., description="Order ID"),
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service)
):
    """Update order status - a seller in the order, or admin/owner."""
    order = order_service.update_status(
        caller,
        order_id,
        status=request.status,
        provider_reference=request.provider_reference
    )
    return {"success": True, "order": OrderResponse.model_validate(order)}


@router.delete("/{order_id}", response_model=CancelOrderResponse)
def cancel_order(
    order_id: int = Path(..., description="Order ID"),
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service)
):
    """Cancel an order and restore stock - buyer before shipping, or admin/owner."""
    order = order_service.cancel_order(caller, order_id)
    return {
        "success": True,
        "message": "Order cancelled",
        "order": OrderResponse.model_validate(order)
    }
