"""
Bookmart - Custom Exceptions
=============================
Business-level exceptions, converted to HTTP responses by the handlers in main.py.
"""


class BookmartError(Exception):
    """Base exception for all business logic errors."""
    status_code = 400

    def __init__(self, message: str = "Server error"):
        self.message = message
        super().__init__(self.message)


class ValidationError(BookmartError):
    """Raised for malformed or missing input."""
    status_code = 400


class EmptyCartError(ValidationError):
    """Raised when checking out a cart with no items."""
    def __init__(self):
        super().__init__("Cart is empty")


class AuthenticationError(BookmartError):
    """Raised when no valid bearer credential is present."""
    status_code = 401


class AuthorizationError(BookmartError):
    """Raised when user lacks permission."""
    status_code = 403


class NotFoundError(BookmartError):
    """Raised when a requested resource doesn't exist or isn't owned by the caller."""
    status_code = 404


class AlreadyProcessedError(NotFoundError):
    """Raised when a payment is verified for an order that is no longer pending."""
    def __init__(self, message: str = "Order not found or already processed"):
        super().__init__(message)


class ConflictError(BookmartError):
    """Raised for unique constraint violations at the business level."""
    status_code = 409


class GatewayError(BookmartError):
    """Raised for malformed or unauthenticated gateway notifications."""
    status_code = 400


class PaymentError(BookmartError):
    """Raised when the payment gateway cannot produce a usable answer."""
    status_code = 502
