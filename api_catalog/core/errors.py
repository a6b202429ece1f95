"""Error types raised by the catalog handlers.

Every error is an ``HTTPException`` so routes can raise it directly and
FastAPI renders it as ``{"detail": ...}`` with the matching status code.
"""

from fastapi import HTTPException, status


class NotFound(HTTPException):
    def __init__(self, resource: str) -> None:
        self.resource = resource
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=f'{resource} not found')


class Forbidden(HTTPException):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=reason)


class ValidationFailure(HTTPException):
    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class StoreUnavailable(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        )
