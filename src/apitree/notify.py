"""UI notifier collaborator: loading indicators and toasts.

Calls are fire-and-forget. The dispatcher never lets a notifier failure
change the outcome of a request.
"""

import logging
from typing import Literal, Protocol, TypeAlias

logger = logging.getLogger(__name__)

ToastKind: TypeAlias = Literal["error", "none"]


class Notifier(Protocol):
    def show_loading(self, title: str) -> None: ...

    def hide_loading(self) -> None: ...

    def show_toast(self, message: str, kind: ToastKind) -> None: ...


class LoggingNotifier:
    """Default notifier for headless use: routes UI signals to the log."""

    def show_loading(self, title: str) -> None:
        logger.debug("loading: %s", title)

    def hide_loading(self) -> None:
        logger.debug("loading done")

    def show_toast(self, message: str, kind: ToastKind) -> None:
        if kind == "error":
            logger.error("%s", message)
        else:
            logger.warning("%s", message)


class NullNotifier:
    """Discards every signal."""

    def show_loading(self, title: str) -> None:
        pass

    def hide_loading(self) -> None:
        pass

    def show_toast(self, message: str, kind: ToastKind) -> None:
        pass
