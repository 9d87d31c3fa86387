from .contour_pipeline import ContourPipeline

__all__ = [
    "ContourPipeline",
]
