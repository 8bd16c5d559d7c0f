"""
Custom exceptions for the Ingress check-in service.

Services raise these for conditions the caller has to branch on. Each carries
a human-readable message and a machine-readable error code that controllers
pass through to the client unchanged.
"""


class IngressError(Exception):
    """
    Base exception for the check-in service.

    All custom exceptions inherit from this class so controllers can handle
    them in one place.
    """

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class MalformedToken(IngressError):
    """Raised when scanned text cannot be parsed into a QR token."""

    def __init__(self, detail: str):
        super().__init__(f"Invalid QR code: {detail}", "malformed_token")
        self.detail = detail


class TransientStoreFailure(IngressError):
    """
    Raised when the database stays unavailable after the transaction retries.

    The operator may retry by rescanning; nothing was committed.
    """

    def __init__(self, detail: str = None):
        message = "Check-in service temporarily unavailable. Please scan again."
        super().__init__(message, "transient_store_failure")
        self.detail = detail


class EventNotActive(IngressError):
    """Raised when a scanner tries to bind to an event that is not live."""

    def __init__(self, event_id: str):
        super().__init__(f"Event '{event_id}' is not active", "event_not_active")
        self.event_id = event_id

