"""DedupWindow 단위 테스트"""

from __future__ import annotations

from alchemist.skills.dedup import DedupWindow


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestDedupWindow:
    def test_first_sighting_is_not_duplicate(self) -> None:
        window = DedupWindow(window=120.0)
        assert window.check_and_record("cmd-1") is False
        assert "cmd-1" in window

    def test_second_sighting_is_duplicate(self) -> None:
        window = DedupWindow(window=120.0)
        window.check_and_record("cmd-1")
        assert window.check_and_record("cmd-1") is True
        assert window.check_and_record("cmd-1") is True
        assert len(window) == 1

    def test_distinct_ids(self) -> None:
        window = DedupWindow(window=120.0)
        assert window.check_and_record("a") is False
        assert window.check_and_record("b") is False
        assert len(window) == 2

    def test_expired_record_is_purged(self) -> None:
        clock = FakeClock()
        window = DedupWindow(window=120.0, clock=clock)
        window.check_and_record("cmd-1")

        clock.now += 121.0

        assert window.check_and_record("cmd-1") is False

    def test_duplicate_does_not_extend_window(self) -> None:
        clock = FakeClock()
        window = DedupWindow(window=120.0, clock=clock)
        window.check_and_record("cmd-1")
        clock.now += 100.0
        assert window.check_and_record("cmd-1") is True

        clock.now += 30.0

        assert window.check_and_record("cmd-1") is False

    def test_max_entries_evicts_oldest(self) -> None:
        window = DedupWindow(window=120.0, max_entries=3)
        for i in range(4):
            window.check_and_record(f"id-{i}")

        assert len(window) == 3
        assert "id-0" not in window
        assert "id-3" in window

    def test_purge_returns_removed_count(self) -> None:
        clock = FakeClock()
        window = DedupWindow(window=10.0, clock=clock)
        window.check_and_record("a")
        window.check_and_record("b")
        clock.now += 5.0
        window.check_and_record("c")
        clock.now += 6.0

        assert window.purge() == 2
        assert len(window) == 1
