"""Payments API router."""
from fastapi import APIRouter, Depends, Path

from auth import get_caller
from dependencies import get_payment_service
from schemas import PaymentCreate, PaymentEnvelope, PaymentResponse, PaymentsListResponse
from services.authorization import Caller
from services.payment_service import PaymentService

router = APIRouter(prefix="/api/payment", tags=["payments"])


@router.post("", status_code=201, response_model=PaymentEnvelope)
def create_payment(
    request: PaymentCreate,
    caller: Caller = Depends(get_caller),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """Record a payment for an order - requires authentication."""
    payment = payment_service.record_payment(
        caller,
        order_id=request.order_id,
        amount=request.amount,
        method=request.method,
        transaction_id=request.transaction_id,
        notes=request.notes
    )
    return {"success": True, "payment": PaymentResponse.model_validate(payment)}


@router.get("/order/{order_id}", response_model=PaymentEnvelope)
def get_payment_by_order(
    order_id: int = Path(..., description="Order ID"),
    caller: Caller = Depends(get_caller),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """Get the caller's payment for an order."""
    payment = payment_service.get_payment_for_order(caller, order_id)
    return {"success": True, "payment": PaymentResponse.model_validate(payment)}


@router.get("", response_model=PaymentsListResponse)
def get_all_payments(
    caller: Caller = Depends(get_caller),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """List all payments - admin/owner only."""
    payments = payment_service.list_payments(caller)
    return {"success": True, "payments": [PaymentResponse.model_validate(p) for p in payments]}
