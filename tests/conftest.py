from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cncvision.core.vision.backend import ImageBackend  # noqa: E402
from cncvision.core.vision.detectors.results import Surface  # noqa: E402


def _make_surface(size=(200, 200), squares=(), fg=255, bg=0) -> Surface:
    """RGBA surface with filled squares given as ``(x, y, side)``."""
    h, w = size
    rgba = np.zeros((h, w, 4), dtype=np.uint8)
    rgba[..., :3] = bg
    rgba[..., 3] = 255
    for x, y, side in squares:
        rgba[y:y + side, x:x + side, :3] = fg
    return Surface(rgba)


class RecordingObserver:
    def __init__(self) -> None:
        self.events = []

    def progress_started(self, description):
        self.events.append(("start", description))

    def progress_ended(self):
        self.events.append(("end",))

    def user_message(self, text, duration_ms):
        self.events.append(("message", text, duration_ms))

    def messages(self):
        return [e[1] for e in self.events if e[0] == "message"]


@pytest.fixture()
def make_surface():
    return _make_surface


@pytest.fixture()
def backend() -> ImageBackend:
    b = ImageBackend()
    assert b.mark_ready()
    return b


@pytest.fixture()
def square_surface() -> Surface:
    # 200x200 with a centered 100x100 solid square
    return _make_surface(squares=[(50, 50, 100)])


@pytest.fixture()
def observer() -> RecordingObserver:
    return RecordingObserver()
