"""Process-wide entry points.

``api`` is the singleton route tree. The verb helpers call a known url
directly, without path inference.
"""

from typing import Any

from apitree.dispatcher import Envelope
from apitree.tree import Config, Params, RouteTree, Verb

api = RouteTree.root()


async def request(
    url: str,
    params: Params = None,
    body: Any = None,
    method: Verb | str = Verb.POST,
    config: Config = None,
) -> Envelope[Any]:
    return await api(url, params, body, method, config)


async def get(
    url: str, params: Params = None, body: Any = None, config: Config = None
) -> Envelope[Any]:
    return await api(url, params, body, Verb.GET, config)


async def post(
    url: str, params: Params = None, body: Any = None, config: Config = None
) -> Envelope[Any]:
    return await api(url, params, body, Verb.POST, config)


async def put(
    url: str, params: Params = None, body: Any = None, config: Config = None
) -> Envelope[Any]:
    return await api(url, params, body, Verb.PUT, config)


async def delete(
    url: str, params: Params = None, body: Any = None, config: Config = None
) -> Envelope[Any]:
    return await api(url, params, body, Verb.DELETE, config)
