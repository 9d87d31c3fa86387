"""Image-to-contour extraction pipeline."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping, Optional, Union

import cv2

from ...errors import InvalidInput, NoEdgesFound
from ...notify import NullObserver, notify
from .. import imgproc
from ..backend import Buffer, ImageBackend
from ..config import VisionConfig
from ..config_defaults import RESIZE_MESSAGE_MS
from ..detectors.results import Contour, DetectOptions, EdgeMode, PipelineResult, Surface
from ..dynamic_adjuster import DynamicAdjuster, Thresholds
from ..resources import BufferScope, ResourceTracker

logger = logging.getLogger(__name__)

OptionsLike = Union[DetectOptions, Mapping[str, Any], None]


class ContourPipeline:
    """Turn a raster surface into a primary contour plus ranked secondaries.

    Every transient buffer is owned by a :class:`BufferScope` for the duration
    of one :meth:`detect` call and released on every exit path. Contour
    geometries are handed to the caller; a copy of the smoothed intensity
    image is retained as :attr:`snapshot` until the next successful call.

    The pipeline is not reentrant. Run it through
    :class:`~cncvision.core.executor.TaskExecutor` when calls may overlap.
    """

    def __init__(
        self,
        backend: ImageBackend,
        tracker: Optional[ResourceTracker] = None,
        config: Optional[VisionConfig] = None,
        observer: Optional[object] = None,
    ) -> None:
        self.backend = backend
        self.cfg = config or VisionConfig()
        self.tracker = tracker or ResourceTracker(self.cfg.tracker.capacity)
        self.observer = observer or NullObserver()
        self._snapshot: Optional[Buffer] = None

    # ----------------------------- Public API -----------------------------
    @property
    def snapshot(self) -> Optional[Buffer]:
        """Smoothed grayscale copy from the last successful run."""
        return self._snapshot

    def resolve_options(self, options: OptionsLike = None) -> DetectOptions:
        """Fill unspecified options from the pipeline configuration."""
        if isinstance(options, DetectOptions):
            return options
        data = dict(options or {})
        return DetectOptions(
            mode=data.get("mode", self.cfg.pipeline.mode),
            sensitivity=data.get("sensitivity", self.cfg.pipeline.sensitivity),
        )

    def detect(self, surface: Surface, options: OptionsLike = None) -> PipelineResult:
        """Run the pipeline on ``surface``.

        Args:
            surface: Raster image to analyse.
            options: Edge mode and sensitivity; defaults come from the config.

        Returns:
            PipelineResult: Primary contour and secondaries, largest first.

        Raises:
            BackendNotReady: The backend has not reported ready.
            InvalidInput: Zero-sized surface or invalid options.
            NoEdgesFound: Nothing survived the area filter.
        """
        self.backend.ensure_ready()
        if surface is None or surface.width <= 0 or surface.height <= 0:
            w = getattr(surface, "width", 0)
            h = getattr(surface, "height", 0)
            raise InvalidInput(f"surface must have positive dimensions, got {w}x{h}")
        opts = self.resolve_options(options)

        start = time.perf_counter()
        with self.tracker.scope("detect") as scope:
            result = self._run(scope, surface, opts)
        logger.info(
            "[PIPELINE] %s: %d contour(s), primary area %.0f px in %.1f ms",
            opts.mode.value,
            result.total,
            result.primary.area,
            (time.perf_counter() - start) * 1000.0,
        )
        return result

    async def detect_async(self, surface: Surface, options: OptionsLike = None) -> PipelineResult:
        """Run :meth:`detect` in a worker thread."""
        return await asyncio.to_thread(self.detect, surface, options)

    def close(self) -> None:
        """Release the retained snapshot and everything still tracked."""
        if self._snapshot is not None:
            self.tracker.safe_release(self._snapshot)
            self._snapshot = None
        self.tracker.cleanup_all()

    # --------------------------- Internals ---------------------------
    def _buffer(self, scope: BufferScope, array, label: str, track: bool = True) -> Buffer:
        return scope.adopt(self.backend.wrap(array, label), track=track)

    def _run(self, scope: BufferScope, surface: Surface, opts: DetectOptions) -> PipelineResult:
        pcfg = self.cfg.pipeline

        factor = imgproc.prescale_factor(surface.width, surface.height, pcfg.max_pixels)
        pixels = surface.pixels
        if factor < 1.0:
            pixels = imgproc.prescale(pixels, factor)
            logger.info(
                "[PIPELINE] downscaled %dx%d -> %dx%d",
                surface.width, surface.height, pixels.shape[1], pixels.shape[0],
            )
            notify(self.observer, "user_message", "Image reduced for better performance", RESIZE_MESSAGE_MS)

        # ----- Intensity + smoothing -----
        src = self._buffer(scope, pixels, "src")
        gray = self._buffer(scope, imgproc.to_gray(src.data), "gray")
        scope.release(src)
        blurred = self._buffer(
            scope,
            imgproc.smooth(gray.data, self.cfg.smoothing.kernel, self.cfg.smoothing.sigma),
            "blurred",
        )
        scope.release(gray)

        # ----- Edges -----
        th = DynamicAdjuster(opts.sensitivity).apply(blurred.data)
        logger.debug(
            "[PIPELINE] mean=%.1f lower=%.1f upper=%.1f mode=%s",
            th.mean, th.lower, th.upper, opts.mode.value,
        )
        edges = self._edges(scope, opts.mode, blurred, th)

        # ----- Gap closing -----
        kernel = self._buffer(scope, imgproc.closing_kernel(self.cfg.morph.close_kernel), "kernel")
        closed = self._buffer(scope, imgproc.close_gaps(edges.data, kernel.data), "closed")
        scope.release(edges)
        scope.release(kernel)

        # ----- Contours -----
        raw, hierarchy = imgproc.find_contours(closed.data, pcfg.retrieval)
        scratch = self._buffer(scope, hierarchy, "hierarchy")
        scope.release(closed)
        geometries = [
            self._buffer(scope, imgproc.scale_contour(c, factor), "contour", track=False)
            for c in raw
        ]
        scope.release(scratch)

        min_area = float(pcfg.min_area_fraction) * surface.pixel_count
        survivors = []
        for geom in geometries:
            area = float(cv2.contourArea(geom.data))
            if area > min_area:
                survivors.append(Contour(geometry=geom, area=area))
            else:
                scope.release(geom)
        logger.debug("[PIPELINE] %d of %d contour(s) above %.0f px", len(survivors), len(raw), min_area)
        if not survivors:
            raise NoEdgesFound(
                f"no clear edges found ({opts.mode.value} mode, sensitivity {opts.sensitivity:.2f})"
            )

        survivors.sort(key=lambda c: c.area, reverse=True)
        self._replace_snapshot(blurred)
        for contour in survivors:
            scope.detach(contour.geometry)
        return PipelineResult(primary=survivors[0], secondary=tuple(survivors[1:]), scale=factor)

    def _edges(self, scope: BufferScope, mode: EdgeMode, blurred: Buffer, th: Thresholds) -> Buffer:
        ecfg = self.cfg.edges
        if mode is EdgeMode.AUTO:
            return self._buffer(scope, imgproc.canny_edges(blurred.data, th.lower, th.upper), "edges")
        if mode is EdgeMode.GRADIENT:
            grad_x = self._buffer(scope, imgproc.sobel_component(blurred.data, 1, 0, ecfg.sobel_ksize), "grad_x")
            grad_y = self._buffer(scope, imgproc.sobel_component(blurred.data, 0, 1, ecfg.sobel_ksize), "grad_y")
            edges = self._buffer(
                scope, imgproc.combine_gradients(grad_x.data, grad_y.data, ecfg.gradient_weight), "edges"
            )
            scope.release(grad_x)
            scope.release(grad_y)
            return edges
        if mode is EdgeMode.CURVATURE:
            return self._buffer(scope, imgproc.curvature_edges(blurred.data, ecfg.laplace_ksize), "edges")
        raise InvalidInput(f"unsupported edge mode {mode!r}")

    def _replace_snapshot(self, blurred: Buffer) -> None:
        if self._snapshot is not None:
            self.tracker.safe_release(self._snapshot)
            self._snapshot = None
        self._snapshot = blurred.clone("snapshot")
