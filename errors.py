"""Error taxonomy for the marketplace service.

Services raise these; ``main`` registers handlers that turn them into the
``{"success": false, "message": ...}`` envelope. Anything that is not a
``MarketplaceError`` is treated as unexpected and answered with a generic 500.
"""
from typing import Optional


class MarketplaceError(Exception):
    """Base exception for all expected marketplace failures."""

    status_code = 500
    kind = "unexpected"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationError(MarketplaceError):
    """The request carries no usable identity. ``reason`` labels the failure metric."""

    status_code = 401
    kind = "unauthenticated"

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)


class ValidationError(MarketplaceError):
    """Malformed or missing input, detected before anything is mutated."""

    status_code = 400
    kind = "validation"


class NotFoundError(MarketplaceError):
    """A referenced entity does not exist."""

    status_code = 404
    kind = "not_found"


class ForbiddenError(MarketplaceError):
    """Authenticated caller is not allowed to perform the operation."""

    status_code = 403
    kind = "forbidden"


class ConflictError(MarketplaceError):
    """A business rule was violated."""

    status_code = 400
    kind = "conflict"


class EmptyOrderError(ValidationError):
    def __init__(self):
        super().__init__("No items provided")


class InvalidItemError(ValidationError):
    def __init__(self, position: int):
        self.position = position
        super().__init__(f"Invalid item format at position {position}")


class InvalidStatusValueError(ValidationError):
    def __init__(self, value: Optional[str]):
        self.value = value
        super().__init__("Invalid status")


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__("Order not found")


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class SellerNotFoundError(NotFoundError):
    def __init__(self, seller_id: int):
        self.seller_id = seller_id
        super().__init__("Seller not found")


class PaymentNotFoundError(NotFoundError):
    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__("Payment not found")


class InsufficientStockError(ConflictError):
    def __init__(self, product_id: int, product_name: str, requested: int, available: int):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(f"Not enough stock for {product_name}")


class MissingSellerAssignmentError(ConflictError):
    def __init__(self, product_id: int, product_name: str):
        self.product_id = product_id
        self.product_name = product_name
        super().__init__(f"Product {product_name} has no seller")


class IllegalCancellationError(ConflictError):
    def __init__(self, order_id: int, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__("Cannot cancel at this stage")


class OrderAlreadyCancelledError(ConflictError):
    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__("Order is already cancelled")


class DuplicateTransactionError(ConflictError):
    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__("Transaction ID already exists")


class DuplicateSellerError(ConflictError):
    def __init__(self, message: str = "Seller already registered"):
        super().__init__(message)


class SellerAlreadyApprovedError(ConflictError):
    def __init__(self, seller_id: int):
        self.seller_id = seller_id
        super().__init__("Seller already approved")
