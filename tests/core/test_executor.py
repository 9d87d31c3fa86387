import asyncio

import pytest

from cncvision.core.executor import TaskExecutor


def test_tasks_run_one_at_a_time_in_fifo_order():
    log = []

    def job(name, delay):
        async def run():
            log.append(f"{name} start")
            await asyncio.sleep(delay)
            log.append(f"{name} end")
            return name

        return run

    async def runner():
        ex = TaskExecutor(settle_delay=0)
        futures = [ex.submit(job("A", 0.03), "A"), ex.submit(job("B", 0.0), "B"), ex.submit(job("C", 0.01), "C")]
        return await asyncio.gather(*futures)

    results = asyncio.run(runner())
    assert results == ["A", "B", "C"]
    assert log == ["A start", "A end", "B start", "B end", "C start", "C end"]


def test_failure_settles_only_its_own_future(observer):
    def boom():
        raise ValueError("bad surface")

    async def runner():
        ex = TaskExecutor(observer, settle_delay=0)
        failed = ex.submit(boom, "boom task")
        ok = ex.submit(lambda: 2, "sync task")
        with pytest.raises(ValueError):
            await failed
        return await ok

    assert asyncio.run(runner()) == 2
    assert observer.messages() == ["Failed: boom task: bad surface"]
    assert [e for e in observer.events if e[0] == "message"][0][2] == 5000


def test_progress_brackets_every_invocation(observer):
    def boom():
        raise RuntimeError("x")

    async def runner():
        ex = TaskExecutor(observer, settle_delay=0)
        first = ex.submit(lambda: 1, "one")
        second = ex.submit(boom, "two")
        await first
        with pytest.raises(RuntimeError):
            await second

    asyncio.run(runner())
    progress = [e for e in observer.events if e[0] != "message"]
    assert progress == [("start", "one"), ("end",), ("start", "two"), ("end",)]


def test_clear_drops_pending_but_lets_current_finish():
    async def runner():
        ex = TaskExecutor(settle_delay=0)

        async def slow():
            await asyncio.sleep(0.03)
            return "slow"

        current = ex.submit(slow, "slow")
        pending = [ex.submit(lambda: "never", f"p{i}") for i in range(2)]
        assert ex.queue_length() == 3

        await asyncio.sleep(0)
        assert ex.current_description == "slow"
        assert ex.busy
        assert ex.clear() == 2
        assert ex.queue_length() == 0

        assert await current == "slow"
        await ex.join()
        assert not any(f.done() for f in pending)
        assert not ex.is_running
        assert not ex.busy

        # the executor keeps working after a clear
        return await ex.submit(lambda: "later", "later")

    assert asyncio.run(runner()) == "later"


def test_settle_delay_applied_between_tasks():
    async def runner():
        ex = TaskExecutor(settle_delay=0.05)
        loop = asyncio.get_running_loop()
        stamps = []
        a = ex.submit(lambda: stamps.append(loop.time()), "a")
        b = ex.submit(lambda: stamps.append(loop.time()), "b")
        await asyncio.gather(a, b)
        return stamps

    first, second = asyncio.run(runner())
    assert second - first >= 0.04


def test_broken_observer_does_not_break_tasks():
    class Broken:
        def progress_started(self, description):
            raise RuntimeError("ui gone")

        def progress_ended(self):
            raise RuntimeError("ui gone")

    async def runner():
        ex = TaskExecutor(Broken(), settle_delay=0)
        return await ex.submit(lambda: 42, "answer")

    assert asyncio.run(runner()) == 42


def test_submit_requires_running_loop():
    ex = TaskExecutor()
    with pytest.raises(RuntimeError):
        ex.submit(lambda: None)
