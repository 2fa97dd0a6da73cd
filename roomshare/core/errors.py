from fastapi import HTTPException


class RoomshareError(Exception):
    """Base class for errors raised by the roomshare services."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class StoreError(RoomshareError):
    """The backing store failed (network, timeout or backend error)."""

    def __init__(self, message: str = "Store operation failed.", retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class ValidationError(RoomshareError):
    """Malformed input. Surfaced inline, never retried."""


class NotFoundError(RoomshareError):
    """A referenced conversation, listing or profile does not exist."""


class PermissionDeniedError(RoomshareError):
    """Row level security (or a participant check) refused the operation."""


def as_http_exception(error: RoomshareError) -> HTTPException:
    """Map a service error onto the HTTP error the routers return."""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=error.message)

    if isinstance(error, PermissionDeniedError):
        return HTTPException(status_code=403, detail=error.message or "Forbidden.")

    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=error.message or "Not found.")

    if isinstance(error, StoreError):
        return HTTPException(
            status_code=503,
            detail=error.message,
            headers={"Retry-After": "1"} if error.retryable else None,
        )

    return HTTPException(status_code=500, detail="Internal server error.")
