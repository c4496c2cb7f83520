"""SessionManager 단위 테스트"""

from __future__ import annotations

import asyncio
import threading

import pytest

from alchemist.agents.base import AgentLifecycle
from alchemist.agents.sweeper import SessionSweepAgent
from alchemist.models.config import DialogConfig
from alchemist.models.errors import SessionExpired, SessionNotFound
from alchemist.skills.session_manager import SessionManager


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(clock: FakeClock) -> SessionManager:
    return SessionManager(
        DialogConfig(max_history=100, context_window=10, session_timeout=3600.0),
        clock=clock,
    )


class TestHistoryBounds:
    def test_101_appends_keep_newest_100(self, manager: SessionManager) -> None:
        sid = manager.create()
        for i in range(101):
            manager.append(sid, "user", f"m{i}")

        history = manager.history(sid)
        assert len(history) == 100
        assert history[0].content == "m1"
        assert history[-1].content == "m100"

    def test_max_history_plus_k(self, clock: FakeClock) -> None:
        manager = SessionManager(DialogConfig(max_history=5, context_window=3), clock=clock)
        sid = manager.create()
        for i in range(5 + 7):
            manager.append(sid, "user", f"m{i}")

        assert [e.content for e in manager.history(sid)] == [f"m{i}" for i in range(7, 12)]

    def test_context_returns_newest_in_order(self, manager: SessionManager) -> None:
        sid = manager.create()
        for i in range(25):
            manager.append(sid, "user", f"m{i}")

        context = manager.context(sid)
        assert [e.content for e in context] == [f"m{i}" for i in range(15, 25)]

    def test_context_shorter_than_window(self, manager: SessionManager) -> None:
        sid = manager.create()
        manager.append(sid, "user", "hello")
        assert [e.content for e in manager.context(sid)] == ["hello"]

    def test_context_does_not_mutate(self, manager: SessionManager) -> None:
        sid = manager.create()
        manager.append(sid, "user", "a")
        manager.context(sid)
        manager.context(sid)
        assert len(manager.history(sid)) == 1

    def test_rejects_zero_max_history(self) -> None:
        with pytest.raises(ValueError):
            SessionManager(DialogConfig(max_history=0))


class TestLookupErrors:
    def test_append_unknown_session(self, manager: SessionManager) -> None:
        with pytest.raises(SessionNotFound):
            manager.append("nope", "user", "hi")

    def test_end_removes_session(self, manager: SessionManager) -> None:
        sid = manager.create()
        manager.end(sid)
        with pytest.raises(SessionNotFound):
            manager.history(sid)
        assert manager.active_count == 0


class TestExpiry:
    def test_expired_session_raises_and_is_removed(
        self, manager: SessionManager, clock: FakeClock,
    ) -> None:
        sid = manager.create()
        clock.now += 3601.0

        with pytest.raises(SessionExpired):
            manager.append(sid, "user", "late")
        assert manager.active_count == 0
        with pytest.raises(SessionNotFound):
            manager.context(sid)

    def test_context_on_expired_session(self, manager: SessionManager, clock: FakeClock) -> None:
        sid = manager.create()
        clock.now += 4000.0
        with pytest.raises(SessionExpired):
            manager.context(sid)

    def test_append_refreshes_activity(self, manager: SessionManager, clock: FakeClock) -> None:
        sid = manager.create()
        clock.now += 3000.0
        manager.append(sid, "user", "still here")
        clock.now += 3000.0
        manager.append(sid, "user", "again")
        assert len(manager.history(sid)) == 2

    def test_sweep_removes_only_expired(self, manager: SessionManager, clock: FakeClock) -> None:
        old = manager.create()
        clock.now += 3000.0
        fresh = manager.create()
        clock.now += 700.0

        assert manager.expire_sweep() == 1
        assert manager.active_count == 1
        assert manager.history(fresh) == []
        with pytest.raises(SessionNotFound):
            manager.history(old)

    def test_sweep_is_idempotent(self, manager: SessionManager, clock: FakeClock) -> None:
        manager.create()
        clock.now += 4000.0
        assert manager.expire_sweep() == 1
        assert manager.expire_sweep() == 0


class TestCountCallback:
    def test_callback_tracks_active_count(self, clock: FakeClock) -> None:
        counts: list[int] = []
        manager = SessionManager(DialogConfig(), clock=clock, on_count_change=counts.append)

        a = manager.create()
        manager.create()
        manager.end(a)

        assert counts == [1, 2, 1]

    def test_callback_error_is_contained(self, clock: FakeClock) -> None:
        def boom(count: int) -> None:
            raise RuntimeError("listener failed")

        manager = SessionManager(DialogConfig(), clock=clock, on_count_change=boom)
        sid = manager.create()
        assert manager.active_count == 1
        manager.append(sid, "user", "ok")


class TestConcurrency:
    def test_parallel_appends_and_sweeps(self, clock: FakeClock) -> None:
        manager = SessionManager(DialogConfig(max_history=50), clock=clock)
        sid = manager.create()

        def writer() -> None:
            for i in range(200):
                manager.append(sid, "user", str(i))

        def sweeper() -> None:
            for _ in range(200):
                manager.expire_sweep()

        threads = [threading.Thread(target=writer) for _ in range(4)]
        threads.append(threading.Thread(target=sweeper))
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(manager.history(sid)) == 50


class TestSessionHandle:
    def test_handle_exposes_restricted_view(self, manager: SessionManager) -> None:
        handle = manager.handle()
        sid = handle.create({"user_id": "u1"})
        handle.append(sid, "user", "hi")

        assert handle.max_history == 100
        assert handle.metadata(sid) == {"user_id": "u1"}
        assert [e.content for e in handle.context(sid)] == ["hi"]

        handle.end(sid)
        assert manager.active_count == 0


class TestSweepAgent:
    def test_sweep_counts_removed(self, manager: SessionManager, clock: FakeClock) -> None:
        sweeper = SessionSweepAgent(manager, interval=60.0)
        manager.create()
        manager.create()
        clock.now += 4000.0

        assert sweeper.sweep() == 2
        assert sweeper.sweep() == 0
        assert sweeper.total_removed == 2

    @pytest.mark.asyncio
    async def test_stops_promptly(self, manager: SessionManager) -> None:
        sweeper = SessionSweepAgent(manager, interval=60.0)
        task = asyncio.create_task(sweeper.start())
        await asyncio.sleep(0.01)

        sweeper.request_stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert sweeper.lifecycle is AgentLifecycle.OFF
