"""license-relay exception hierarchy.

Every error carries the HTTP status the inbound surfaces answer with.
``stage`` is filled in by the fulfillment flow with the state the flow
was leaving when the error occurred.
"""

from typing import Optional


class RelayError(Exception):
    """Base exception for all license-relay errors."""

    status_code = 500

    def __init__(self, message: str = "", code: str = "RELAY_ERROR"):
        self.message = message
        self.code = code
        self.stage: Optional[str] = None
        super().__init__(message)


class SignatureInvalid(RelayError):
    """Raised when a webhook payload fails signature verification."""

    status_code = 400

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message, code="SIGNATURE_INVALID")


class BadRequest(RelayError):
    """Raised for malformed bodies or missing required fields."""

    status_code = 400

    def __init__(self, message: str = "Bad request"):
        super().__init__(message, code="BAD_REQUEST")


class MissingPriceId(RelayError):
    """Raised when neither the event nor its line items name a price."""

    status_code = 400

    def __init__(self, message: str = "No price id found for purchase"):
        super().__init__(message, code="MISSING_PRICE_ID")


class UnmappedPrice(RelayError):
    """Raised when a price id has no entry in the policy table."""

    status_code = 400

    def __init__(self, price_id: str):
        self.price_id = price_id
        super().__init__(f"No policy mapped for price {price_id}", code="UNMAPPED_PRICE")


class PriceLookupFailed(RelayError):
    """Raised when the line-item query against the payment provider fails."""

    status_code = 502

    def __init__(self, message: str = "Line item lookup failed"):
        super().__init__(message, code="PRICE_LOOKUP_FAILED")


class LicenseIssuanceFailed(RelayError):
    """Raised when the licensing API does not return a license key."""

    status_code = 502

    def __init__(self, message: str = "License issuance failed", upstream_status: Optional[int] = None):
        self.upstream_status = upstream_status
        super().__init__(message, code="LICENSE_ISSUANCE_FAILED")


class NotificationFailed(RelayError):
    """Raised by the notifier; logged by callers, never surfaced."""

    def __init__(self, message: str = "License email could not be sent"):
        super().__init__(message, code="NOTIFICATION_FAILED")


class Forbidden(RelayError):
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="FORBIDDEN")


class MethodNotAllowed(RelayError):
    status_code = 405

    def __init__(self, message: str = "Method not allowed"):
        super().__init__(message, code="METHOD_NOT_ALLOWED")


class ConfigurationError(RelayError):
    """Raised for invalid deployment configuration."""

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(message, code="CONFIGURATION_ERROR")
