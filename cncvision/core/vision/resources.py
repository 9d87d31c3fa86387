"""Bookkeeping for manually released image buffers."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..errors import ResourceInvalid
from .config_defaults import TRACKER_CAPACITY

logger = logging.getLogger(__name__)


def is_valid_handle(handle: Any) -> bool:
    """Return ``True`` if ``handle`` can still be released."""
    try:
        if handle is None or not callable(getattr(handle, "release", None)):
            return False
        return not bool(getattr(handle, "released", False))
    except Exception:
        return False


class ResourceTracker:
    """Bounded registry of live buffer handles.

    Handles are kept in insertion order. Once more than ``capacity`` are
    tracked, the oldest one is released and forgotten, whether or not
    someone still holds it. Pipelines should therefore own their buffers
    through :meth:`scope`, which releases them as soon as they are consumed.
    """

    def __init__(self, capacity: int = TRACKER_CAPACITY) -> None:
        if int(capacity) < 1:
            raise ValueError("tracker capacity must be at least 1")
        self.capacity = int(capacity)
        self._handles: Dict[int, Any] = {}
        self.evictions = 0

    def __contains__(self, handle: Any) -> bool:
        return id(handle) in self._handles and self._handles[id(handle)] is handle

    def track(self, handle: Any) -> None:
        """Register ``handle``; invalid handles are logged and ignored."""
        if not is_valid_handle(handle):
            logger.warning("[TRACKER] %s", ResourceInvalid(f"refusing to track {handle!r}"))
            return
        if handle in self:
            return
        self._handles[id(handle)] = handle
        while len(self._handles) > self.capacity:
            self._evict_oldest()

    def untrack(self, handle: Any) -> None:
        """Forget ``handle`` without releasing it."""
        if handle in self:
            del self._handles[id(handle)]

    def _evict_oldest(self) -> None:
        key = next(iter(self._handles))
        oldest = self._handles.pop(key)
        self.evictions += 1
        logger.debug("[TRACKER] capacity %d exceeded, evicting %r", self.capacity, oldest)
        self.safe_release(oldest)

    def safe_release(self, handle: Any) -> bool:
        """Release ``handle`` if it is still valid.

        Returns ``True`` when a release actually happened. Already released or
        foreign handles are a no-op; release faults are logged, not raised.
        """
        if not is_valid_handle(handle):
            return False
        try:
            handle.release()
            return True
        except Exception as exc:
            logger.warning("[TRACKER] failed to release %r: %s", handle, exc)
            return False

    def cleanup_all(self) -> int:
        """Release and forget every tracked handle. Returns how many were freed."""
        handles = list(self._handles.values())
        self._handles.clear()
        freed = 0
        for handle in handles:
            if self.safe_release(handle):
                freed += 1
        if handles:
            logger.info("[TRACKER] cleanup released %d of %d handle(s)", freed, len(handles))
        return freed

    def usage_count(self) -> int:
        return len(self._handles)

    def scope(self, name: str = "scope") -> "BufferScope":
        return BufferScope(self, name)


class BufferScope:
    """Scope-bound ownership of buffers created during one operation.

    Every buffer adopted by the scope is released when the ``with`` block
    exits, on success and on failure alike, unless it was handed over with
    :meth:`detach` first.

    Example::

        with tracker.scope("detect") as scope:
            gray = scope.adopt(backend.wrap(array, "gray"))
            ...
            result = scope.detach(gray)
    """

    def __init__(self, tracker: ResourceTracker, name: str = "scope") -> None:
        self.tracker = tracker
        self.name = name
        self._owned: List[Any] = []
        self._tracked: Dict[int, bool] = {}

    def __enter__(self) -> "BufferScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def adopt(self, handle: Any, track: bool = True) -> Any:
        """Take ownership of ``handle``; ``track=False`` keeps it off the tracker."""
        self._owned.append(handle)
        self._tracked[id(handle)] = track
        if track:
            self.tracker.track(handle)
        return handle

    def owns(self, handle: Any) -> bool:
        return any(h is handle for h in self._owned)

    def _forget(self, handle: Any) -> bool:
        for i, owned in enumerate(self._owned):
            if owned is handle:
                del self._owned[i]
                if self._tracked.pop(id(handle), False):
                    self.tracker.untrack(handle)
                return True
        return False

    def release(self, handle: Any) -> None:
        """Release a stage output as soon as it has been consumed."""
        self._forget(handle)
        self.tracker.safe_release(handle)

    def detach(self, handle: Any) -> Any:
        """Hand ``handle`` over to the caller; the scope will not release it."""
        if not self._forget(handle):
            raise ResourceInvalid(f"{handle!r} is not owned by scope '{self.name}'")
        return handle

    @property
    def owned_count(self) -> int:
        return len(self._owned)

    def close(self) -> None:
        while self._owned:
            handle = self._owned.pop()
            if self._tracked.pop(id(handle), False):
                self.tracker.untrack(handle)
            self.tracker.safe_release(handle)

    def __repr__(self) -> str:
        return f"<BufferScope {self.name} owned={len(self._owned)}>"
