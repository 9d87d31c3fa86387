from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from ..core.executor import TaskExecutor
from ..core.notify import LoggingObserver, notify
from ..core.vision.backend import ImageBackend
from ..core.vision.config import VisionConfig, load_config as load_vision_config
from ..core.vision.config_defaults import READY_MESSAGE_MS
from ..core.vision.detectors.results import Surface
from ..core.vision.pipeline.contour_pipeline import ContourPipeline, OptionsLike
from ..core.vision.resources import ResourceTracker
from .config import AppConfig, load_config

logger = logging.getLogger(__name__)


class Application:
    """Own the backend, tracker, pipeline and executor of one session.

    Construct once, ``await start()`` before submitting work and call
    :meth:`close` (or ``await aclose()``) at teardown.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        vision_config: Optional[VisionConfig] = None,
        observer: Optional[object] = None,
        backend: Optional[ImageBackend] = None,
    ) -> None:
        self.config = config or load_config()
        self.vision_config = vision_config or load_vision_config(self.config.vision_config or None)
        self.observer = observer or LoggingObserver()
        self.backend = backend or ImageBackend()
        self.tracker = ResourceTracker(self.vision_config.tracker.capacity)
        self.pipeline = ContourPipeline(self.backend, self.tracker, self.vision_config, self.observer)
        self.executor = TaskExecutor(self.observer, self.config.executor.settle_delay)
        self._closed = False

    async def start(self) -> None:
        """Wait for the image backend within the configured timeout."""
        bcfg = self.config.backend
        logger.info("[APP] waiting for image backend (timeout %.1fs)", bcfg.ready_timeout)
        await self.backend.wait_until_ready(
            timeout=bcfg.ready_timeout,
            interval=bcfg.poll_interval,
            backoff=bcfg.backoff,
            max_interval=bcfg.max_interval,
            on_ready=lambda: notify(self.observer, "user_message", "Image backend ready", READY_MESSAGE_MS),
        )

    def submit_detect(
        self,
        surface: Surface,
        options: OptionsLike = None,
        description: str = "contour detection",
    ) -> "asyncio.Future[Any]":
        """Queue one pipeline run; the future resolves to a PipelineResult."""
        return self.executor.submit(lambda: self.pipeline.detect_async(surface, options), description)

    def close(self) -> None:
        """Drop pending work and release every retained buffer.

        Raises:
            RuntimeError: A detection is still executing; its stage buffers
                are in use. Await :meth:`aclose` instead.
        """
        if self._closed:
            return
        if self.executor.busy:
            raise RuntimeError(
                f"cannot close while '{self.executor.current_description}' is running; use aclose()"
            )
        self._closed = True
        self.executor.clear()
        self.pipeline.close()
        logger.info("[APP] closed (%d buffer(s) still live in backend)", self.backend.live)

    async def aclose(self) -> None:
        """Like :meth:`close` but lets a running invocation finish first."""
        self.executor.clear()
        await self.executor.join()
        self.close()
