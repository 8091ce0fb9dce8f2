"""
Error taxonomy for gigboard.

Domain code raises these; the API layer maps them onto HTTP responses via
``status_code``. ``TransientStorageError`` is deliberately outside the
``MarketplaceError`` tree: it is a storage-level signal that callers may
retry, never a business outcome.
"""


class MarketplaceError(Exception):
    """Base exception for marketplace operations."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError, ValueError):
    """Raised when input fields are malformed."""

    status_code = 400


class InvalidStateError(MarketplaceError):
    """Raised when an entity is not in a state that allows the operation."""

    status_code = 400


class UnauthorizedError(MarketplaceError):
    """Raised when credentials are missing or wrong."""

    status_code = 401


class ForbiddenError(MarketplaceError):
    """Raised when the caller is not allowed to perform the operation."""

    status_code = 403


class NotFoundError(MarketplaceError):
    """Raised when a referenced entity does not exist."""

    status_code = 404


class ConflictError(MarketplaceError):
    """Raised when a concurrent writer won, or a uniqueness rule was hit.

    This is a terminal outcome and must not be retried.
    """

    status_code = 409


class RetryExhaustedError(ConflictError):
    """Raised when transient storage conflicts outlasted the retry budget."""

    def __init__(self, message: str = "The request conflicted with other updates. Please try again.", attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class TransientStorageError(Exception):
    """Raised by a store when the backend reports retryable contention.

    Examples are serialization failures or deadlocks reported by Postgres.
    The write it interrupted did not take effect.
    """

    def __init__(self, table: str, operation: str, cause: Exception | None = None):
        self.table = table
        self.operation = operation
        self.cause = cause
        super().__init__(f"Transient storage conflict on {table} during {operation}")
