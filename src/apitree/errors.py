"""Exception taxonomy for dispatched calls.

Every terminal attempt ends in exactly one of: a returned envelope,
TransportError, HttpStatusError or BusinessError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from apitree.dispatcher import Envelope


class ApiError(Exception):
    """Base class for all errors raised by apitree."""


class InvalidPathError(ApiError, ValueError):
    """Empty path given to URL building. Programmer error, never retried."""


class TransportError(ApiError):
    """Network or platform failure before any HTTP status was received."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class HttpStatusError(ApiError):
    """Transport succeeded but the server answered with a non-200 status."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"server responded with status {status_code}")
        self.status_code = status_code


class BusinessError(ApiError):
    """Envelope code outside the accepted set (including exhausted re-auth)."""

    def __init__(
        self,
        code: int | None,
        message: str,
        envelope: Envelope[Any] | None = None,
    ) -> None:
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.envelope = envelope
