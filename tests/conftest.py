from typing import Any

from apitree.config import Settings
from apitree.dispatcher import RequestDispatcher
from apitree.notify import ToastKind
from apitree.transport import TransportRequest, TransportResponse
from apitree.tree import RouteTree

BASE_URL = "http://api.test"


def envelope(
    code: int = 0, message: str = "ok", data: Any = None, status: int = 200
) -> TransportResponse:
    return TransportResponse(
        status_code=status, data={"code": code, "message": message, "data": data}
    )


class ScriptedTransport:
    """Mock transport that replays scripted outcomes and captures requests.

    Outcomes are consumed in order; the last one repeats forever.
    """

    def __init__(self, *outcomes: TransportResponse | Exception) -> None:
        self.outcomes = list(outcomes) or [envelope()]
        self.requests: list[TransportRequest] = []

    async def __call__(self, request: TransportRequest) -> TransportResponse:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingNotifier:
    """Mock notifier that captures every UI signal."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def show_loading(self, title: str) -> None:
        self.calls.append(("show_loading", title))

    def hide_loading(self) -> None:
        self.calls.append(("hide_loading",))

    def show_toast(self, message: str, kind: ToastKind) -> None:
        self.calls.append(("show_toast", message, kind))

    @property
    def toasts(self) -> list[tuple[str, str]]:
        return [(c[1], c[2]) for c in self.calls if c[0] == "show_toast"]


class SessionSupplier:
    """Mock session supplier handing out numbered tokens."""

    def __init__(self, token: str | None = "token") -> None:
        self.token = token
        self.calls: list[bool] = []

    async def __call__(self, force_refresh: bool) -> str | None:
        self.calls.append(force_refresh)
        if self.token is None:
            return None
        return f"{self.token}-{len(self.calls)}"


class ActivityCounter:
    def __init__(self) -> None:
        self.count = 0

    def __call__(self) -> None:
        self.count += 1


def mock_settings(transport: ScriptedTransport, **changes: Any) -> Settings:
    values: dict[str, Any] = {
        "base_url": BASE_URL,
        "transport": transport,
        "notifier": RecordingNotifier(),
        "session_supplier": SessionSupplier(),
        "on_activity": ActivityCounter(),
    }
    values.update(changes)
    return Settings(**values)


def mock_tree(
    *outcomes: TransportResponse | Exception, **changes: Any
) -> tuple[RouteTree, ScriptedTransport, Settings]:
    transport = ScriptedTransport(*outcomes)
    settings = mock_settings(transport, **changes)
    return RouteTree(RequestDispatcher(settings)), transport, settings
