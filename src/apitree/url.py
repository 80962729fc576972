"""Request URL construction: base URL + path + query string."""

from collections.abc import Mapping
from typing import Any

import httpx

from apitree.errors import InvalidPathError

_ABSOLUTE_PREFIXES = ("http://", "https://")


def build_url(base: str, path: str, params: Mapping[str, Any] | None = None) -> str:
    """Combine base, path and query params into a single request URL.

    An absolute ``path`` (``http://`` or ``https://``) ignores ``base``.
    The query string is only appended when it serializes to something.
    """
    if not path:
        msg = "path can't be empty"
        raise InvalidPathError(msg)
    if base.endswith("/"):
        base = base[:-1]

    if path.startswith(_ABSOLUTE_PREFIXES):
        url = path
    else:
        if not path.startswith("/"):
            path = "/" + path
        url = base + path

    query = str(httpx.QueryParams(params or {}))
    if query:
        url += "?" + query
    return url
