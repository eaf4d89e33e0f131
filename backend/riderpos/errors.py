# Overview: Domain errors raised by the checkout, inventory and tax services.

from __future__ import annotations


class CheckoutError(Exception):
    """Base class for checkout and inventory errors; carries structured details."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(CheckoutError):
    """Raised when a rider, product or transaction does not exist."""


class InsufficientStock(CheckoutError):
    """Requested quantity exceeds what the rider has on hand."""

    def __init__(
        self,
        product_id: int,
        requested: int,
        available: int,
        product_name: str | None = None,
    ):
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}: requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested_quantity": requested,
                "available_quantity": available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class EmptyCart(CheckoutError):
    def __init__(self, message: str = "Cannot commit a sale with no lines"):
        super().__init__(message)


class DuplicateTransactionNumber(CheckoutError):
    """Generated transaction number already exists. Retriable with a fresh number."""

    def __init__(self, number: str):
        super().__init__(
            f"Transaction number {number} already exists",
            details={"transaction_number": number},
        )
        self.number = number


class CommitFailed(CheckoutError):
    """Persisting a sale failed; everything was rolled back."""

    def __init__(self, cause: BaseException):
        super().__init__(
            "Failed to commit transaction",
            details={"cause": type(cause).__name__, "message": str(cause)},
        )
        self.cause = cause


class InvalidTaxPolicy(CheckoutError):
    """Tax rate outside [0, 100] or otherwise malformed policy."""
