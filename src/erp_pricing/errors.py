"""
Exception types raised by the pricing, quotation and acceptance services.

The API layer maps them to HTTP responses through ``http_status``.
"""


class ErpError(Exception):
    """Base class for business-rule failures."""
    http_status = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ErpError, ValueError):
    """Input or workflow state rejected by a business rule."""
    http_status = 400


class NotFoundError(ErpError, ValueError):
    """A referenced record does not exist."""
    http_status = 404


class PricingError(ValidationError):
    """A pricing configuration cannot produce a price."""
