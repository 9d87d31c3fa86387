"""Error taxonomy shared by the vision core and the task executor."""

from __future__ import annotations

from typing import Optional


class VisionError(RuntimeError):
    """Base class for failures raised by the contour pipeline.

    Attributes:
        stage: Short name of the stage that failed (``"readiness"``,
            ``"input"``, ``"filter"``...). Included in ``str()`` so user
            messages say where the failure happened.
    """

    default_stage: str = "pipeline"

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"


class BackendNotReady(VisionError):
    """The image backend never confirmed readiness before the call."""

    default_stage = "readiness"


class InvalidInput(VisionError, ValueError):
    """Degenerate surface, unsupported layout or out-of-range option."""

    default_stage = "input"


class NoEdgesFound(VisionError):
    """No contour survived the area filter."""

    default_stage = "filter"


class ResourceInvalid(VisionError):
    """A buffer handle failed its validity probe or was used after release."""

    default_stage = "resources"
