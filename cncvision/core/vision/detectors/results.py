from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Tuple, Union

import cv2
import numpy as np
from numpy.typing import NDArray

from ...errors import InvalidInput
from ..backend import Buffer
from ..config_defaults import DEFAULT_SENSITIVITY


class EdgeMode(Enum):
    """Edge detectors available to the pipeline.

    AUTO runs Canny with adaptive thresholds, GRADIENT sums first-derivative
    (Sobel) magnitudes, CURVATURE uses the normalized second derivative
    (Laplacian).
    """

    AUTO = "auto"
    GRADIENT = "gradient"
    CURVATURE = "curvature"

    @classmethod
    def parse(cls, value: Union[str, "EdgeMode", None]) -> "EdgeMode":
        if value is None:
            return cls.AUTO
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        key = _LEGACY_MODES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            names = ", ".join(m.value for m in cls)
            raise InvalidInput(f"unknown edge mode '{value}' (expected one of: {names})") from None


# Older mode names still accepted from saved settings
_LEGACY_MODES = {"canny": "auto", "sobel": "gradient", "laplace": "curvature", "laplacian": "curvature"}


@dataclass(frozen=True)
class DetectOptions:
    mode: EdgeMode = EdgeMode.AUTO
    sensitivity: float = DEFAULT_SENSITIVITY

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", EdgeMode.parse(self.mode))
        try:
            s = float(self.sensitivity)
        except (TypeError, ValueError):
            raise InvalidInput(f"sensitivity must be a number, got {self.sensitivity!r}") from None
        if not 0.0 < s < 1.0:
            raise InvalidInput(f"sensitivity must lie in (0, 1), got {s}")
        object.__setattr__(self, "sensitivity", s)


@dataclass
class Surface:
    """Raster image handed to the pipeline.

    ``pixels`` is ``H x W x 4`` (RGBA, the canvas layout), ``H x W x 3``
    (RGB) or ``H x W`` (intensity).
    """

    pixels: NDArray

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0]) if self.pixels.ndim >= 1 else 0

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1]) if self.pixels.ndim >= 2 else 0

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @classmethod
    def from_array(cls, array) -> "Surface":
        pixels = np.asarray(array)
        if pixels.dtype != np.uint8:
            pixels = np.clip(pixels, 0, 255).astype(np.uint8)
        return cls(pixels)

    @classmethod
    def from_path(cls, path: str) -> "Surface":
        """Load an image file and convert it to RGBA."""
        img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if img is None:
            raise InvalidInput(f"cannot load image '{path}'")
        if img.ndim == 2:
            rgba = cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
        elif img.shape[2] == 4:
            rgba = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
        else:
            rgba = cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
        return cls(rgba)


@dataclass
class Contour:
    """Closed outline with its enclosed area.

    ``geometry`` belongs to the caller once returned by the pipeline and must
    be released with :meth:`release`.
    """

    geometry: Buffer
    area: float

    @property
    def points(self) -> NDArray:
        return self.geometry.data.reshape(-1, 2)

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        x, y, w, h = cv2.boundingRect(self.geometry.data)
        return int(x), int(y), int(w), int(h)

    @property
    def perimeter(self) -> float:
        return float(cv2.arcLength(self.geometry.data, True))

    def release(self) -> None:
        if not self.geometry.released:
            self.geometry.release()


@dataclass
class PipelineResult:
    """Ranked contours from one pipeline run; never empty."""

    primary: Contour
    secondary: Tuple[Contour, ...] = field(default_factory=tuple)
    scale: float = 1.0

    def __post_init__(self) -> None:
        self.secondary = tuple(self.secondary)
        areas = [c.area for c in self.secondary]
        if any(a > self.primary.area for a in areas):
            raise ValueError("primary contour must have the largest area")
        if any(a < b for a, b in zip(areas, areas[1:])):
            raise ValueError("secondary contours must be sorted by descending area")

    @property
    def total(self) -> int:
        return 1 + len(self.secondary)

    @property
    def contours(self) -> Iterator[Contour]:
        yield self.primary
        yield from self.secondary

    def release(self) -> None:
        """Release every contour geometry held by this result."""
        for contour in self.contours:
            contour.release()
