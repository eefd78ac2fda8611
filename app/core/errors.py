"""API error types. Every error response carries a stable machine-readable code."""

from typing import Any, Optional
from fastapi import HTTPException, status


STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_409_CONFLICT: "CONFLICT",
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: "PAYLOAD_TOO_LARGE",
    status.HTTP_429_TOO_MANY_REQUESTS: "RATE_LIMITED",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "INTERNAL_ERROR",
}


def code_for_status(status_code: int) -> str:
    return STATUS_CODES.get(status_code, "INTERNAL_ERROR" if status_code >= 500 else "BAD_REQUEST")


class APIError(HTTPException):
    """HTTPException with an error code and optional details."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Any = None,
    ):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.code = code or code_for_status(status_code)
        self.details = details


class BadRequestError(APIError):
    def __init__(self, message: str = "Bad request", code: str = "BAD_REQUEST", details: Any = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, code, details)


class UnauthorizedError(APIError):
    def __init__(self, message: str = "Not authenticated", code: str = "UNAUTHORIZED"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, code)


class ForbiddenError(APIError):
    def __init__(self, message: str = "Access denied", code: str = "FORBIDDEN"):
        super().__init__(status.HTTP_403_FORBIDDEN, message, code)


class NotFoundError(APIError):
    def __init__(self, message: str = "Resource not found", code: str = "NOT_FOUND"):
        super().__init__(status.HTTP_404_NOT_FOUND, message, code)


class ConflictError(APIError):
    def __init__(self, message: str = "Resource already exists", code: str = "CONFLICT"):
        super().__init__(status.HTTP_409_CONFLICT, message, code)
