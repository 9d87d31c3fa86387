"""Optional presentation hooks used by the executor and the pipeline."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class Observer(Protocol):
    """Receives progress and user-facing messages. Every hook is optional."""

    def progress_started(self, description: str) -> None:
        ...

    def progress_ended(self) -> None:
        ...

    def user_message(self, text: str, duration_ms: int) -> None:
        ...


class NullObserver:
    """Observer that ignores everything."""

    def progress_started(self, description: str) -> None:
        return None

    def progress_ended(self) -> None:
        return None

    def user_message(self, text: str, duration_ms: int) -> None:
        return None


class LoggingObserver(NullObserver):
    """Route notifications to the ``cncvision.core.notify`` logger."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def progress_started(self, description: str) -> None:
        self._log.info("[PROGRESS] %s...", description)

    def progress_ended(self) -> None:
        self._log.debug("[PROGRESS] done")

    def user_message(self, text: str, duration_ms: int) -> None:
        self._log.info("[MESSAGE] %s (%d ms)", text, duration_ms)


def notify(observer: Optional[object], hook: str, *args) -> None:
    """Call ``observer.<hook>(*args)`` if present; failures are only logged."""
    if observer is None:
        return
    fn = getattr(observer, hook, None)
    if fn is None:
        return
    try:
        fn(*args)
    except Exception:
        logger.warning("Observer hook %s failed", hook, exc_info=True)
