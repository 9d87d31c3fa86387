"""Configuration models and helpers for the vision core.

Structured dataclasses describe the pipeline, smoothing, morphology and
resource-tracking settings. Configuration data is provided as YAML and mapped
to these structures with strict validation (unknown keys raise
``ValueError``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Dict, Optional

import yaml

from .config_defaults import (
    BLUR_KERNEL,
    BLUR_SIGMA,
    CLOSE_KERNEL,
    DEFAULT_SENSITIVITY,
    GRADIENT_WEIGHT,
    LAPLACE_KSIZE,
    MAX_PIXELS,
    MIN_AREA_FRACTION,
    RETRIEVAL,
    SOBEL_KSIZE,
    TRACKER_CAPACITY,
)

# ---------------------------------------------------------------------------
# Helper utilities

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_CONFIG_PATH = os.path.join(BASE_DIR, "config", "vision.yaml")


def _strict(cls, data: Dict[str, Any]):
    """Instantiate ``cls`` ensuring ``data`` contains only known keys."""

    try:
        return cls(**data)
    except TypeError as e:
        raise ValueError(f"Invalid keys for {cls.__name__}: {e}") from e


# ---------------------------------------------------------------------------
# Dataclass models


@dataclass
class PipelineConfig:
    mode: str = "auto"
    sensitivity: float = DEFAULT_SENSITIVITY
    min_area_fraction: float = MIN_AREA_FRACTION
    max_pixels: int = MAX_PIXELS
    retrieval: str = RETRIEVAL

    def __post_init__(self) -> None:
        if self.retrieval not in ("external", "list"):
            raise ValueError(f"retrieval must be 'external' or 'list', got {self.retrieval!r}")
        if not 0.0 <= float(self.min_area_fraction) < 1.0:
            raise ValueError("min_area_fraction must lie in [0, 1)")


@dataclass
class SmoothingConfig:
    kernel: int = BLUR_KERNEL
    sigma: float = BLUR_SIGMA


@dataclass
class EdgeConfig:
    sobel_ksize: int = SOBEL_KSIZE
    laplace_ksize: int = LAPLACE_KSIZE
    gradient_weight: float = GRADIENT_WEIGHT


@dataclass
class MorphConfig:
    close_kernel: int = CLOSE_KERNEL


@dataclass
class TrackerConfig:
    capacity: int = TRACKER_CAPACITY


@dataclass
class VisionConfig:
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    edges: EdgeConfig = field(default_factory=EdgeConfig)
    morph: MorphConfig = field(default_factory=MorphConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)

    def merge_with_defaults(self) -> "VisionConfig":
        """Return a copy with missing fields filled from defaults."""

        return merge_with_defaults(self)


# ---------------------------------------------------------------------------
# Public helpers


def merge_with_defaults(cfg: Optional[VisionConfig] = None) -> VisionConfig:
    """Merge ``cfg`` on top of the built-in defaults and return the result."""

    base = VisionConfig()
    if cfg is None:
        return base

    def _merge(dst: Any, src: Any) -> Any:
        if not is_dataclass(dst):
            return src
        for f in fields(dst):
            sv = getattr(src, f.name)
            if sv is None:
                continue
            dv = getattr(dst, f.name)
            if is_dataclass(dv):
                setattr(dst, f.name, _merge(dv, sv))
            else:
                setattr(dst, f.name, sv)
        return dst

    return _merge(base, cfg)


def config_from_dict(raw: Dict[str, Any]) -> VisionConfig:
    """Build a :class:`VisionConfig` from a parsed mapping."""
    raw = dict(raw or {})
    sections = {f.name for f in fields(VisionConfig)}
    unknown = set(raw) - sections
    if unknown:
        raise ValueError(f"Unknown vision config section(s): {', '.join(sorted(unknown))}")
    cfg = VisionConfig(
        pipeline=_strict(PipelineConfig, raw.get("pipeline") or {}),
        smoothing=_strict(SmoothingConfig, raw.get("smoothing") or {}),
        edges=_strict(EdgeConfig, raw.get("edges") or {}),
        morph=_strict(MorphConfig, raw.get("morph") or {}),
        tracker=_strict(TrackerConfig, raw.get("tracker") or {}),
    )
    return merge_with_defaults(cfg)


def load_config(path: Optional[str] = None) -> VisionConfig:
    """Load a YAML configuration file and return a ``VisionConfig`` instance.

    Parameters
    ----------
    path:
        Optional path to the configuration file. If ``None`` or a relative
        path, the file is resolved relative to ``DEFAULT_CONFIG_PATH``.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    elif not os.path.isabs(path):
        path = os.path.join(os.path.dirname(DEFAULT_CONFIG_PATH), path)

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Vision config {path} must contain a mapping")
    return config_from_dict(raw)
