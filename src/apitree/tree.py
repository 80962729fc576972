"""Lazily materialized, self-describing route tree.

Attribute access walks path segments. The last segment of a path may encode
the HTTP verb and the call shape, so endpoints need no registration:

    await api.user.info.getP(params)          GET    /user/info  (params, config)
    await api.user.info.putB(body)            PUT    /user/info  (body, config)
    await api.user.info.delZ()                DELETE /user/info  (config)
    await api.user.info(params, body)         POST   /user/info  (params, body, config)

Every node is created on first access and cached on its parent for the life
of the tree, so the same chain always yields the same node.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum, StrEnum
from functools import lru_cache
from typing import Any, ClassVar, TypeAlias

from apitree.dispatcher import Envelope, RequestDispatcher

Params: TypeAlias = Mapping[str, Any] | None
Config: TypeAlias = Mapping[str, Any] | None
BoundCall: TypeAlias = Callable[..., Awaitable[Envelope[Any]]]


class Verb(StrEnum):
    """HTTP verbs a path can resolve to. ``DEL`` is accepted as an alias of DELETE."""

    GET = "GET"  # Retrieve the target.
    POST = "POST"  # Perform target-specific processing with the request payload.
    PUT = "PUT"  # Replace the target with the request payload.
    DELETE = "DELETE"  # Remove the target.

    def __repr__(self) -> str:
        return str(self.value)


class CallShape(Enum):
    """Which positional data arguments an endpoint accepts, keyed by marker letter."""

    PARAMS_ONLY = "P"  # (params, config)
    BODY_ONLY = "B"  # (body, config)
    NO_ARGS = "Z"  # (config)
    PARAMS_AND_BODY = ""  # (params, body, config)

    def __repr__(self) -> str:
        return self.name


_VERBS: dict[str, Verb] = {v.value: v for v in Verb} | {"DEL": Verb.DELETE}
_MARKERS: dict[str, CallShape] = {
    s.value: s for s in CallShape if s is not CallShape.PARAMS_AND_BODY
}
_SIGNATURES: dict[CallShape, str] = {
    CallShape.PARAMS_ONLY: "(params, config)",
    CallShape.BODY_ONLY: "(body, config)",
    CallShape.NO_ARGS: "(config)",
    CallShape.PARAMS_AND_BODY: "(params, body, config)",
}


@dataclass(slots=True, frozen=True)
class PathSpec:
    url: str
    verb: Verb
    shape: CallShape


@lru_cache(maxsize=1024)
def parse_path(path: str) -> PathSpec:
    """Derives url, verb and call shape from a path.

    The final segment is the candidate verb token, optionally suffixed by a
    shape marker (P, B or Z). A token that isn't a verb makes the whole path
    the url, called with POST and both params and body.
    """
    head, _, tail = path.rpartition("/")
    token = tail.upper()
    shape = _MARKERS.get(token[-1:], CallShape.PARAMS_AND_BODY)
    if shape is not CallShape.PARAMS_AND_BODY:
        token = token[:-1]

    verb = _VERBS.get(token)
    if verb is None:  # ordinary resource segment
        return PathSpec(url=path, verb=Verb.POST, shape=CallShape.PARAMS_AND_BODY)
    return PathSpec(url=head, verb=verb, shape=shape)


def _bind(dispatcher: RequestDispatcher, spec: PathSpec) -> BoundCall:
    """Builds the call matching spec.shape, delegating to the dispatcher."""
    url, verb = spec.url, spec.verb

    if spec.shape is CallShape.PARAMS_ONLY:

        async def call_params(
            params: Params = None, config: Config = None
        ) -> Envelope[Any]:
            return await dispatcher.execute(url, params, None, verb, config)

        return call_params

    if spec.shape is CallShape.BODY_ONLY:

        async def call_body(body: Any = None, config: Config = None) -> Envelope[Any]:
            return await dispatcher.execute(url, None, body, verb, config)

        return call_body

    if spec.shape is CallShape.NO_ARGS:

        async def call_bare(config: Config = None) -> Envelope[Any]:
            return await dispatcher.execute(url, None, None, verb, config)

        return call_bare

    async def call(
        params: Params = None, body: Any = None, config: Config = None
    ) -> Envelope[Any]:
        return await dispatcher.execute(url, params, body, verb, config)

    return call


class _Namespace:
    """Construct-on-miss child cache shared by the root and every node.

    Names starting with ``_`` are never segments through attribute access;
    use item access (``node["_private"]``) for those, and for segments that
    aren't valid identifiers.
    """

    __slots__ = ()
    _children: dict[str, RouteNode]
    _dispatcher: RequestDispatcher
    # "" at the root
    _path: str

    def __getattr__(self, name: str) -> RouteNode:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def __getitem__(self, name: str) -> RouteNode:
        child = self._children.get(name)
        if child is None:
            # setdefault keeps construct-on-miss idempotent under concurrent access
            child = self._children.setdefault(
                name, RouteNode(self._path + "/" + name, self._dispatcher)
            )
        return child


class RouteNode(_Namespace):
    """One accessed path prefix: callable endpoint and namespace at once."""

    __slots__ = ("_call", "_children", "_dispatcher", "_path", "_spec")
    _spec: PathSpec
    _call: BoundCall

    def __init__(self, path: str, dispatcher: RequestDispatcher) -> None:
        self._path = path
        self._dispatcher = dispatcher
        self._spec = parse_path(path)
        self._call = _bind(dispatcher, self._spec)
        self._children = {}

    def __call__(self, *args: Any, **kwargs: Any) -> Awaitable[Envelope[Any]]:
        return self._call(*args, **kwargs)

    def __repr__(self) -> str:
        spec = self._spec
        return f"<RouteNode {self._path!r} {spec.verb.value} {spec.url} {spec.shape!r}>"


class RouteTree(_Namespace):
    """Root of the route tree.

    ``RouteTree.root()`` is the process-wide instance. Calling the root
    directly bypasses path inference.
    """

    __slots__ = ("_children", "_dispatcher", "_path")
    _instance: ClassVar[RouteTree | None] = None

    def __init__(self, dispatcher: RequestDispatcher | None = None) -> None:
        self._dispatcher = RequestDispatcher() if dispatcher is None else dispatcher
        self._children = {}
        self._path = ""

    @classmethod
    def root(cls) -> RouteTree:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    async def __call__(
        self,
        url: str,
        params: Params = None,
        body: Any = None,
        method: Verb | str = Verb.POST,
        config: Config = None,
    ) -> Envelope[Any]:
        return await self._dispatcher.execute(url, params, body, method, config)

    def __repr__(self) -> str:
        return f"<RouteTree {len(self._children)} top-level segments>"


def spec_of(node: RouteNode) -> PathSpec:
    return node._spec


def bound_call(node: RouteNode) -> BoundCall:
    """The call a node delegates to. Stable for the node's lifetime."""
    return node._call


def dispatcher_of(node: RouteTree | RouteNode) -> RequestDispatcher:
    return node._dispatcher


def format_routes(root: RouteTree | RouteNode, *, tree: bool = False) -> str:
    """Format every materialized endpoint below root as a human-readable string.

    By default produces a column-aligned flat list, one line per cached node:

        POST     /user        (params, body, config)   /user
        DELETE   /user/info   (config)                 /user/info/delZ
        GET      /user/info   (params, config)         /user/info/getP
        POST     /user/info   (params, body, config)   /user/info

    With `tree=True`, produces a visual tree of the cached segments instead:

        /
        └── user [POST /user]
            └── info [POST /user/info]
                ├── delZ [DELETE /user/info (config)]
                └── getP [GET /user/info (params, config)]
    """
    if tree:
        lines = ["/"]
        _render_tree(root._children, "", lines)
        return "\n".join(lines)

    routes = _collect_routes(root._children)
    routes.sort(key=lambda r: (r[1], r[0], r[3]))
    if not routes:
        return ""
    verb_w = max(len(r[0]) for r in routes)
    url_w = max(len(r[1]) for r in routes)
    sig_w = max(len(r[2]) for r in routes)
    return "\n".join(
        f"{verb:<{verb_w}}   {url:<{url_w}}   {sig:<{sig_w}}   {path}"
        for verb, url, sig, path in routes
    )


_Route: TypeAlias = tuple[str, str, str, str]


def _collect_routes(children: dict[str, RouteNode]) -> list[_Route]:
    """Walk the cache depth first, returning (verb, url, signature, path) entries."""
    routes: list[_Route] = []
    for node in children.values():
        spec = node._spec
        routes.append(
            (spec.verb.value, spec.url, _SIGNATURES[spec.shape], node._path)
        )
        routes.extend(_collect_routes(node._children))
    return routes


def _render_tree(children: dict[str, RouteNode], prefix: str, lines: list[str]) -> None:
    """Recursively render cached children with tree-drawing prefixes."""
    items = sorted(children.items(), key=lambda x: x[0])
    for i, (seg, node) in enumerate(items):
        is_last = i == len(items) - 1
        connector = "└── " if is_last else "├── "
        lines.append(f"{prefix}{connector}{seg} [{_label(node._spec)}]")
        extension = "    " if is_last else "│   "
        _render_tree(node._children, prefix + extension, lines)


def _label(spec: PathSpec) -> str:
    label = f"{spec.verb.value} {spec.url}"
    if spec.shape is not CallShape.PARAMS_AND_BODY:
        label += " " + _SIGNATURES[spec.shape]
    return label
