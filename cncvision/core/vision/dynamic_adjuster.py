from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

from .config_defaults import DEFAULT_SENSITIVITY
from .imgproc import clamp

NDArray = np.ndarray


@dataclass(frozen=True)
class Thresholds:
    mean: float
    lower: float
    upper: float


def adaptive_thresholds(mean: float, sensitivity: float = DEFAULT_SENSITIVITY) -> Tuple[float, float]:
    """Return ``(lower, upper)`` spread around ``mean`` by ``sensitivity``."""
    lower = clamp((1.0 - sensitivity) * float(mean), 0.0, 255.0)
    upper = clamp((1.0 + sensitivity) * float(mean), 0.0, 255.0)
    return lower, upper


class DynamicAdjuster:
    """Derive edge-detector thresholds from the smoothed image."""

    def __init__(self, sensitivity: float = DEFAULT_SENSITIVITY) -> None:
        self.sensitivity = float(sensitivity)

    def apply(self, gray: NDArray) -> Thresholds:
        mean = float(cv2.mean(gray)[0])
        lower, upper = adaptive_thresholds(mean, self.sensitivity)
        return Thresholds(mean=mean, lower=lower, upper=upper)
