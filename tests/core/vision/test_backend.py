import asyncio

import numpy as np
import pytest

from cncvision.core.errors import BackendNotReady, ResourceInvalid
from cncvision.core.vision.backend import ImageBackend


def test_buffer_release_twice_is_a_fault():
    backend = ImageBackend()
    buf = backend.wrap(np.zeros((4, 4), dtype=np.uint8), "tmp")
    buf.release()
    assert buf.released
    with pytest.raises(ResourceInvalid):
        buf.release()
    with pytest.raises(ResourceInvalid):
        _ = buf.data


def test_live_count_tracks_allocations():
    backend = ImageBackend()
    a = backend.wrap(np.ones((2, 2), dtype=np.uint8), "a")
    b = a.clone()
    assert backend.live == 2
    b.data[0, 0] = 9
    assert a.data[0, 0] == 1
    a.release()
    b.release()
    assert backend.live == 0
    assert backend.allocated == 2


def test_probe_leaves_no_live_buffers():
    backend = ImageBackend()
    assert backend.probe() is True
    assert backend.live == 0
    assert not backend.is_ready


def test_ensure_ready_raises_before_probe():
    backend = ImageBackend()
    with pytest.raises(BackendNotReady):
        backend.ensure_ready()
    backend.mark_ready()
    backend.ensure_ready()


def test_wait_until_ready_retries_until_probe_passes(monkeypatch):
    backend = ImageBackend()
    answers = iter([False, False, True])
    calls = []
    monkeypatch.setattr(backend, "probe", lambda: next(answers))

    async def runner():
        await backend.wait_until_ready(
            timeout=5.0, interval=0.001, backoff=2.0, max_interval=0.004,
            on_ready=lambda: calls.append("ready"),
        )

    asyncio.run(runner())
    assert backend.is_ready
    assert calls == ["ready"]


def test_wait_until_ready_gives_up_after_timeout(monkeypatch):
    backend = ImageBackend()
    attempts = []

    def failing_probe():
        attempts.append(1)
        return False

    monkeypatch.setattr(backend, "probe", failing_probe)

    async def runner():
        await backend.wait_until_ready(timeout=0.05, interval=0.01, backoff=1.5, max_interval=0.02)

    with pytest.raises(BackendNotReady):
        asyncio.run(runner())
    assert not backend.is_ready
    assert 2 <= len(attempts) < 50


def test_probe_failure_is_reported_not_raised(monkeypatch):
    backend = ImageBackend()

    def boom(*_a, **_k):
        raise RuntimeError("no native library")

    monkeypatch.setattr(backend, "wrap", boom)
    assert backend.probe() is False
