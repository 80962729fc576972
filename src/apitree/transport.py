"""Transport collaborator: the single network primitive the dispatcher calls.

A transport is any async callable taking a TransportRequest and returning a
TransportResponse. Failures are raised. Transport middleware wraps a
transport in another transport, the same way handler middleware wraps
handlers.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

import httpx

from apitree.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TransportRequest:
    url: str
    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass(frozen=True, slots=True)
class TransportResponse:
    status_code: int
    data: Any = None  # decoded JSON, or raw text when the body isn't JSON


Transport: TypeAlias = Callable[[TransportRequest], Awaitable[TransportResponse]]
TransportMiddleware: TypeAlias = Callable[[Transport], Transport]


class HttpxTransport:
    """Default transport backed by httpx.

    Without a ``client`` a short-lived ``httpx.AsyncClient`` is opened per
    request. Pass a client to share one (or to plug in ``httpx.MockTransport``).
    """

    __slots__ = ("_client", "_timeout")

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout
        self._client = client

    async def __call__(self, request: TransportRequest) -> TransportResponse:
        try:
            if self._client is not None:
                resp = await self._send(self._client, request)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await self._send(client, request)
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        logger.debug("%s %s -> %s", request.method, request.url, resp.status_code)
        return TransportResponse(status_code=resp.status_code, data=_decode(resp))

    @staticmethod
    async def _send(
        client: httpx.AsyncClient, request: TransportRequest
    ) -> httpx.Response:
        # only send a json body if there is one
        if request.body is not None:
            return await client.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                json=request.body,
            )
        return await client.request(
            request.method, request.url, headers=dict(request.headers)
        )


def _decode(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return resp.text
