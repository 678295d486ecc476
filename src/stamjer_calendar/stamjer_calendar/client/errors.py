from __future__ import annotations

from typing import Any, Optional


class ApiError(Exception):
    """Non-2xx response that does not map onto a domain error."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class TransportError(ApiError):
    """The request never produced a response (connect error, timeout)."""
