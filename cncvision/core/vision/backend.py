"""Native image buffers and the backend that allocates them.

OpenCV arrays are garbage collected in Python, but the pipeline is written
against buffers that must be released explicitly and exactly once.
:class:`Buffer` models such a handle: after :meth:`Buffer.release` its pixel
data is gone and any further access raises :class:`ResourceInvalid`.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Callable, Optional

import cv2
import numpy as np

from ..errors import BackendNotReady, ResourceInvalid
from .config_defaults import (
    READY_BACKOFF,
    READY_MAX_INTERVAL_S,
    READY_POLL_INTERVAL_S,
    READY_TIMEOUT_S,
)

logger = logging.getLogger(__name__)

NDArray = np.ndarray


class Buffer:
    """Handle to one backend-owned image buffer."""

    __slots__ = ("_data", "_released", "_backend", "label", "serial")

    def __init__(self, data: NDArray, backend: "ImageBackend", label: str, serial: int) -> None:
        self._data: Optional[NDArray] = data
        self._released = False
        self._backend = backend
        self.label = label
        self.serial = serial

    @property
    def released(self) -> bool:
        return self._released

    @property
    def data(self) -> NDArray:
        """Return the underlying array; fails once the buffer is released."""
        if self._released or self._data is None:
            raise ResourceInvalid(f"buffer '{self.label}' #{self.serial} used after release")
        return self._data

    @property
    def shape(self):
        return self.data.shape

    def empty(self) -> bool:
        return self.data.size == 0

    def clone(self, label: Optional[str] = None) -> "Buffer":
        """Allocate a new buffer holding a copy of this one."""
        return self._backend.wrap(self.data.copy(), label or f"{self.label}-copy")

    def release(self) -> None:
        """Free the buffer. A second call is a fault, like a native double free."""
        if self._released:
            raise ResourceInvalid(f"buffer '{self.label}' #{self.serial} released twice")
        self._released = True
        self._data = None
        self._backend._on_release(self)

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"<Buffer {self.label}#{self.serial} {state}>"


class ImageBackend:
    """Allocator for :class:`Buffer` handles plus the readiness protocol.

    The backend counts live allocations so leaks are observable. It only
    reports ready once :meth:`probe` has succeeded, either through
    :meth:`wait_until_ready` or :meth:`mark_ready`.
    """

    def __init__(self) -> None:
        self._serial = itertools.count(1)
        self._ready = False
        self.allocated = 0
        self.released = 0

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def live(self) -> int:
        """Number of buffers allocated and not yet released."""
        return self.allocated - self.released

    # ---------------------------------------------------------------- buffers
    def wrap(self, data: NDArray, label: str = "buffer") -> Buffer:
        """Take ownership of ``data`` as a new native buffer."""
        self.allocated += 1
        buf = Buffer(data, self, label, next(self._serial))
        logger.debug("[BACKEND] alloc %r", buf)
        return buf

    def _on_release(self, buf: Buffer) -> None:
        self.released += 1
        logger.debug("[BACKEND] free %r", buf)

    # ------------------------------------------------------------- readiness
    def probe(self) -> bool:
        """Construct and immediately release a trivial buffer.

        Returns ``True`` when the native subsystem answered. OpenCV must be
        able to report its build information for the probe to pass.
        """
        try:
            if not cv2.getBuildInformation():
                return False
            test = self.wrap(np.zeros((1, 1), dtype=np.uint8), "probe")
            test.release()
            return True
        except Exception as exc:
            logger.warning("[BACKEND] readiness probe failed, retrying: %s", exc)
            return False

    def mark_ready(self) -> bool:
        """Run a single probe and remember the outcome."""
        self._ready = self.probe()
        return self._ready

    async def wait_until_ready(
        self,
        timeout: float = READY_TIMEOUT_S,
        interval: float = READY_POLL_INTERVAL_S,
        backoff: float = READY_BACKOFF,
        max_interval: float = READY_MAX_INTERVAL_S,
        on_ready: Optional[Callable[[], None]] = None,
    ) -> None:
        """Poll :meth:`probe` until it passes or ``timeout`` seconds elapse.

        The delay between probes starts at ``interval`` and grows by
        ``backoff`` up to ``max_interval``.

        Raises:
            BackendNotReady: If the probe never succeeded within ``timeout``.
        """
        if self._ready:
            return
        deadline = time.monotonic() + max(0.0, float(timeout))
        delay = max(0.0, float(interval))
        attempts = 0
        while True:
            attempts += 1
            if self.probe():
                self._ready = True
                logger.info("[BACKEND] ready after %d probe(s)", attempts)
                if on_ready is not None:
                    on_ready()
                return
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise BackendNotReady(
                    f"image backend not ready after {attempts} probe(s) in {timeout:.1f}s"
                )
            await asyncio.sleep(min(delay, remaining))
            delay = min(max_interval, delay * backoff) if backoff > 1.0 else delay

    def ensure_ready(self) -> None:
        if not self._ready:
            raise BackendNotReady("image backend has not reported ready yet")
