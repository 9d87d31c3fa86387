"""Raster-to-contour extraction for CNC toolpath preparation."""

from .core.errors import BackendNotReady, InvalidInput, NoEdgesFound, ResourceInvalid, VisionError
from .core.executor import TaskExecutor
from .core.vision import (
    Contour,
    ContourPipeline,
    DetectOptions,
    EdgeMode,
    ImageBackend,
    PipelineResult,
    ResourceTracker,
    Surface,
)

__version__ = "0.1.0"

__all__ = [
    "BackendNotReady",
    "Contour",
    "ContourPipeline",
    "DetectOptions",
    "EdgeMode",
    "ImageBackend",
    "InvalidInput",
    "NoEdgesFound",
    "PipelineResult",
    "ResourceInvalid",
    "ResourceTracker",
    "Surface",
    "TaskExecutor",
    "VisionError",
]
