from __future__ import annotations

from typing import Any, Optional

from fastapi import status


class ApiError(Exception):
    """Error rendered as `{"error": ..., "message": ...}` by the app exception handler."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, error: str, message: Optional[str] = None) -> None:
        super().__init__(error)
        self.error = error
        self.message = message

    def to_content(self) -> dict[str, Any]:
        content: dict[str, Any] = {"error": self.error}
        if self.message is not None:
            content["message"] = self.message
        return content


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED


class BadRequest(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND


class InternalError(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
