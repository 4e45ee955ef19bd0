"""Payment record keeping.

Payments have their own lifecycle. Recording one does not move the order's
status; a ``Paid`` order status is set through the order status update.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from errors import (
    DuplicateTransactionError,
    ForbiddenError,
    OrderNotFoundError,
    PaymentNotFoundError,
    ValidationError,
)
from models import Payment
from monitoring import payments_recorded_counter
from services.authorization import Caller
from services.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("JazzCash", "Easypaisa", "COD")
CASH_ON_DELIVERY = "COD"
MIN_PAYMENT_AMOUNT = 1


class PaymentRecordStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class PaymentService:
    """Service for recording and reading payments."""

    def __init__(self, uow: AbstractUnitOfWork):
        self.uow = uow

    def record_payment(
        self,
        caller: Caller,
        order_id: int,
        amount: float,
        method: str,
        transaction_id: str,
        notes: Optional[str] = None
    ) -> Payment:
        """
        Record a payment made against an order.

        Cash on delivery stays Pending; other methods are recorded as
        Completed with paid-at stamped.

        Raises:
            ValidationError: If method, amount or transaction id are invalid
            OrderNotFoundError: If the order does not exist
            DuplicateTransactionError: If the transaction id was already recorded
        """
        if method not in PAYMENT_METHODS:
            raise ValidationError("Valid payment method is required")
        if amount is None or amount < MIN_PAYMENT_AMOUNT:
            raise ValidationError("Amount must be a number")
        if not transaction_id:
            raise ValidationError("Transaction ID is required")

        with self.uow:
            if self.uow.orders.get(order_id) is None:
                raise OrderNotFoundError(order_id)
            if self.uow.payments.get_by_transaction_id(transaction_id) is not None:
                raise DuplicateTransactionError(transaction_id)

            is_cod = method == CASH_ON_DELIVERY
            payment = Payment(
                user_id=caller.user_id,
                order_id=order_id,
                amount=amount,
                method=method,
                transaction_id=transaction_id,
                status=(PaymentRecordStatus.PENDING if is_cod else PaymentRecordStatus.COMPLETED).value,
                paid_at=None if is_cod else datetime.utcnow(),
                notes=notes
            )
            self.uow.payments.add(payment)
            self.uow.commit()

        payments_recorded_counter.add(1, {"method": method, "status": payment.status})
        logger.info("Payment recorded", extra={
            "user_id": caller.user_id,
            "order_id": order_id,
            "payment_id": payment.id,
            "amount": amount,
            "method": method,
            "transaction_id": transaction_id
        })
        return payment

    def get_payment_for_order(self, caller: Caller, order_id: int) -> Payment:
        """The caller's own payment for an order."""
        with self.uow:
            payment = self.uow.payments.get_for_order(order_id, caller.user_id)
            if payment is None:
                raise PaymentNotFoundError(order_id)
            return payment

    def list_payments(self, caller: Caller) -> List[Payment]:
        """All payments, newest first (admin only)."""
        if not caller.is_admin:
            raise ForbiddenError("Not authorized")
        with self.uow:
            return self.uow.payments.list()
