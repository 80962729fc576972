"""Process-wide settings and per-call request configuration.

Settings are read-mostly: set once at startup with ``configure()`` and read
by the dispatcher on every call. RequestConfig is resolved per call by
layering defaults, the process-wide base URL, and the caller's overrides.
"""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, fields, replace
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from apitree.notify import Notifier
    from apitree.transport import Transport

SessionSupplier: TypeAlias = Callable[[bool], Awaitable[str | None]]
ActivityCallback: TypeAlias = Callable[[], None]

DEFAULT_SESSION_HEADER = "Session-Key"


@dataclass(slots=True)
class Settings:
    """Process-wide configuration shared by every dispatched call."""

    base_url: str = ""
    auth_whitelist: frozenset[str] = field(default_factory=frozenset)
    session_supplier: SessionSupplier | None = None
    on_activity: ActivityCallback | None = None
    session_header: str = DEFAULT_SESSION_HEADER
    transport: Transport | None = None  # None: HttpxTransport
    notifier: Notifier | None = None  # None: LoggingNotifier

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``APITREE_*`` environment variables.

        Only plain values can come from the environment; callables
        (session supplier, activity callback, transport) are configured in code.
        """
        env = os.environ if environ is None else environ
        whitelist = env.get("APITREE_AUTH_WHITELIST", "")
        return cls(
            base_url=env.get("APITREE_BASE_URL", ""),
            auth_whitelist=frozenset(
                p.strip() for p in whitelist.split(",") if p.strip()
            ),
            session_header=env.get("APITREE_SESSION_HEADER", DEFAULT_SESSION_HEADER),
        )


settings = Settings()


def configure(target: Settings | None = None, **changes: Any) -> Settings:
    """Update settings in place (the process-wide ones by default)."""
    target = settings if target is None else target
    known = {f.name for f in fields(Settings)}
    unknown = changes.keys() - known
    if unknown:
        msg = f"unknown settings: {', '.join(sorted(unknown))}"
        raise TypeError(msg)
    if "auth_whitelist" in changes:
        changes["auth_whitelist"] = frozenset(changes["auth_whitelist"])
    for name, value in changes.items():
        setattr(target, name, value)
    return target


@dataclass(frozen=True, slots=True)
class RequestConfig:
    """Per-call configuration. Callers override fields with a plain mapping."""

    base_url: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    use_auth: bool = True
    show_toast: bool = True
    show_loading: bool = False
    loading_title: str = "Loading..."
    re_auth: bool = False


DEFAULT_REQUEST_CONFIG = RequestConfig()


def merge_config(
    overrides: Mapping[str, Any] | None, base: Settings | None = None
) -> RequestConfig:
    """Layer defaults -> process-wide base URL -> caller overrides.

    Unknown override keys raise TypeError. ``headers`` is replaced, not merged.
    """
    base = settings if base is None else base
    merged = replace(DEFAULT_REQUEST_CONFIG, base_url=base.base_url)
    if overrides:
        merged = replace(merged, **overrides)
    return merged
