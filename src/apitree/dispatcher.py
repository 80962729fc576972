"""Request dispatcher: executes one logical request.

Merges configuration, resolves the session header, calls the transport,
interprets the response envelope and owns the bounded re-auth loop:

    Authenticated --(code 401)--> Reauthenticating --(retry, max 3)--> Authenticated | Exhausted

Each terminal attempt ends in exactly one of: a returned Envelope,
TransportError, HttpStatusError or BusinessError. Intermediate 401s are
never seen by the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import reduce
from typing import Any, Generic, TypeVar

from apitree.config import RequestConfig, Settings, merge_config
from apitree.config import settings as default_settings
from apitree.errors import BusinessError, HttpStatusError, TransportError
from apitree.notify import LoggingNotifier, Notifier
from apitree.transport import (
    HttpxTransport,
    Transport,
    TransportMiddleware,
    TransportRequest,
    TransportResponse,
)
from apitree.url import build_url

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_REAUTH_ATTEMPTS = 3
SESSION_EXPIRED_CODE = 401
ACCEPTED_CODES: frozenset[int] = frozenset({0, 1000, 1001, 1002, 1003, 1004})

_DOMAIN_NOT_ALLOWED = "url not in domain list"
_DOMAIN_WARNING = (
    "Request URL is not in the allowed domain list, enable debug mode to bypass"
)


@dataclass(frozen=True, slots=True)
class Envelope(Generic[T]):
    """The ``{code, message, data}`` wrapper every successful response carries."""

    code: int | None
    message: str = ""
    data: T | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> Envelope[Any]:
        if not isinstance(payload, Mapping):
            return cls(code=None, message="malformed response envelope", data=payload)
        return cls(
            code=_code(payload.get("code")),
            message=str(payload.get("message") or ""),
            data=payload.get("data"),
        )


def _code(value: Any) -> int | None:
    # false is not 0; 1002.0 is 1002
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value if isinstance(value, int) else None


class RequestDispatcher:
    __slots__ = ("_default_notifier", "_default_transport", "_middleware", "_settings")
    _settings: Settings
    _middleware: tuple[TransportMiddleware, ...]

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = default_settings if settings is None else settings
        self._middleware = ()
        self._default_transport: Transport = HttpxTransport()
        self._default_notifier: Notifier = LoggingNotifier()

    @property
    def settings(self) -> Settings:
        return self._settings

    def use(self, *middleware: TransportMiddleware) -> None:
        """Adds transport middleware. The first registered is outermost."""
        self._middleware = self._middleware + middleware

    def _transport(self) -> Transport:
        transport = self._settings.transport
        if transport is None:
            transport = self._default_transport
        return reduce(lambda t, m: m(t), reversed(self._middleware), transport)

    def _notifier(self) -> Notifier:
        notifier = self._settings.notifier
        return self._default_notifier if notifier is None else notifier

    async def execute(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        body: Any = None,
        verb: str = "POST",
        config: Mapping[str, Any] | None = None,
    ) -> Envelope[Any]:
        """Runs the request, re-issuing it with a fresh session on code 401."""
        method = str(verb).upper()
        merged = merge_config(config, self._settings)
        for attempt in range(MAX_REAUTH_ATTEMPTS + 1):
            envelope = await self._attempt(url, params, body, method, merged, attempt)
            if (
                envelope.code != SESSION_EXPIRED_CODE
                or attempt == MAX_REAUTH_ATTEMPTS
            ):
                break
            logger.info(
                "session expired for %s %s, re-authenticating (%d/%d)",
                method,
                url,
                attempt + 1,
                MAX_REAUTH_ATTEMPTS,
            )
        # an exhausted 401 falls through to the business error path
        return self._classify(envelope, merged)

    async def _attempt(
        self,
        url: str,
        params: Mapping[str, Any] | None,
        body: Any,
        method: str,
        config: RequestConfig,
        attempt: int,
    ) -> Envelope[Any]:
        request_url = build_url(config.base_url, url, params)
        headers = await self._headers(url, config, force_refresh=attempt > 0)
        notifier = self._notifier()

        logger.debug("%s %s attempt=%d", method, request_url, attempt)
        if config.show_loading:
            _fire(notifier.show_loading, config.loading_title)
        try:
            resp = await self._transport()(
                TransportRequest(
                    url=request_url, method=method, headers=headers, body=body
                )
            )
        except Exception as e:  # noqa: BLE001
            if config.show_loading:
                _fire(notifier.hide_loading)
            raise self._transport_error(e, request_url, config) from e

        if config.show_loading:
            _fire(notifier.hide_loading)
        return self._envelope(resp, request_url, config)

    async def _headers(
        self, url: str, config: RequestConfig, *, force_refresh: bool
    ) -> dict[str, str]:
        headers = {"Content-Type": "application/json"} | dict(config.headers or {})
        if not config.use_auth or url in self._settings.auth_whitelist:
            return headers
        supplier = self._settings.session_supplier
        if supplier is None:
            return headers
        token = await supplier(config.re_auth or force_refresh)
        if token is not None:
            headers[self._settings.session_header] = token
        return headers

    def _transport_error(
        self, exc: Exception, request_url: str, config: RequestConfig
    ) -> TransportError:
        detail = exc.detail if isinstance(exc, TransportError) else str(exc)
        logger.warning("transport failure for %s: %s", request_url, detail)
        if _DOMAIN_NOT_ALLOWED in detail and config.show_toast:
            _fire(self._notifier().show_toast, _DOMAIN_WARNING, "none")
        return TransportError(detail)

    def _envelope(
        self, resp: TransportResponse, request_url: str, config: RequestConfig
    ) -> Envelope[Any]:
        if resp.status_code != 200:
            logger.warning("%s responded with status %d", request_url, resp.status_code)
            if config.show_toast:
                _fire(
                    self._notifier().show_toast,
                    f"Server {resp.status_code} error",
                    "error",
                )
            raise HttpStatusError(resp.status_code)
        return Envelope.from_payload(resp.data)

    def _classify(self, envelope: Envelope[Any], config: RequestConfig) -> Envelope[Any]:
        if envelope.code not in ACCEPTED_CODES:
            logger.warning("business error %s: %s", envelope.code, envelope.message)
            if config.show_toast:
                _fire(self._notifier().show_toast, envelope.message, "none")
            raise BusinessError(envelope.code, envelope.message, envelope)

        if self._settings.on_activity is not None:
            _fire(self._settings.on_activity)
        return envelope


def _fire(fn: Callable[..., object], *args: Any) -> None:
    """Invoke a fire-and-forget callback; failures are logged, never raised."""
    try:
        fn(*args)
    except Exception:  # noqa: BLE001
        logger.exception("callback %r failed", fn)
