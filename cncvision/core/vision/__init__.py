"""Vision core: buffers, resource tracking and the contour pipeline."""

from .backend import Buffer, ImageBackend
from .detectors.results import Contour, DetectOptions, EdgeMode, PipelineResult, Surface
from .pipeline import ContourPipeline
from .resources import BufferScope, ResourceTracker

__all__ = [
    "Buffer",
    "BufferScope",
    "Contour",
    "ContourPipeline",
    "DetectOptions",
    "EdgeMode",
    "ImageBackend",
    "PipelineResult",
    "ResourceTracker",
    "Surface",
]
