import asyncio

import pytest

from cncvision.app.application import Application
from cncvision.app.config import AppConfig, BackendConfig, ExecutorConfig
from cncvision.core.errors import BackendNotReady, NoEdgesFound
from cncvision.core.vision.backend import ImageBackend
from cncvision.core.vision.config import VisionConfig


def _app(observer, backend=None, ready_timeout=1.0):
    config = AppConfig(
        executor=ExecutorConfig(settle_delay=0.0),
        backend=BackendConfig(poll_interval=0.001, max_interval=0.005, ready_timeout=ready_timeout),
    )
    return Application(config=config, vision_config=VisionConfig(), observer=observer, backend=backend)


def test_queued_detections_settle_independently(observer, square_surface, make_surface):
    app = _app(observer)

    async def runner():
        await app.start()
        failing = app.submit_detect(make_surface(bg=200), description="blank canvas")
        working = app.submit_detect(square_surface, {"mode": "auto", "sensitivity": 0.33})
        with pytest.raises(NoEdgesFound):
            await failing
        return await working

    result = asyncio.run(runner())
    assert result.total == 1
    assert "Image backend ready" in observer.messages()
    assert any(m.startswith("Failed: blank canvas:") for m in observer.messages())

    result.release()
    app.close()
    app.close()
    assert app.pipeline.snapshot is None
    assert app.backend.live == 0


def test_start_times_out_when_backend_never_answers(observer, monkeypatch):
    backend = ImageBackend()
    monkeypatch.setattr(backend, "probe", lambda: False)
    app = _app(observer, backend=backend, ready_timeout=0.02)

    with pytest.raises(BackendNotReady):
        asyncio.run(app.start())
    app.close()


def test_aclose_waits_for_running_detection(observer, square_surface):
    app = _app(observer)

    async def runner():
        await app.start()
        running = app.submit_detect(square_surface)
        queued = app.submit_detect(square_surface)
        await asyncio.sleep(0)
        await app.aclose()
        return running, queued

    running, queued = asyncio.run(runner())
    assert running.done()
    assert not queued.done()
    running.result().release()
    assert app.backend.live == 0


def test_close_refused_while_detection_runs(observer, square_surface):
    app = _app(observer)

    async def runner():
        await app.start()
        running = app.submit_detect(square_surface, description="busy detect")
        await asyncio.sleep(0)
        assert app.executor.busy
        with pytest.raises(RuntimeError, match="busy detect"):
            app.close()
        return await running

    result = asyncio.run(runner())
    # the stage buffers survived the refused close
    assert result.total == 1
    assert not app.pipeline.snapshot.released

    result.release()
    app.close()
    assert app.backend.live == 0
