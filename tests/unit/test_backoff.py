"""ReconnectBackoff 단위 테스트"""

from __future__ import annotations

import pytest

from alchemist.skills.backoff import ReconnectBackoff


class TestBackoffSequence:
    def test_default_sequence(self) -> None:
        backoff = ReconnectBackoff(initial_delay=0.1, max_delay=30.0, multiplier=2.0, max_attempts=5)
        delays = [backoff.next_delay() for _ in range(5)]
        assert delays == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.6])

    def test_after_max_attempts_uses_max_delay(self) -> None:
        backoff = ReconnectBackoff(initial_delay=0.1, max_delay=30.0, multiplier=2.0, max_attempts=5)
        for _ in range(5):
            backoff.next_delay()
        assert backoff.exhausted
        assert backoff.next_delay() == 30.0
        assert backoff.next_delay() == 30.0

    def test_capped_at_max_delay(self) -> None:
        backoff = ReconnectBackoff(initial_delay=1.0, max_delay=5.0, multiplier=3.0, max_attempts=10)
        delays = [backoff.next_delay() for _ in range(10)]
        assert max(delays) == 5.0
        assert all(d <= 5.0 for d in delays)

    def test_non_decreasing(self) -> None:
        backoff = ReconnectBackoff(initial_delay=0.1, max_delay=2.0, multiplier=1.5, max_attempts=8)
        delays = [backoff.next_delay() for _ in range(20)]
        assert delays == sorted(delays)

    def test_reset_after_connect(self) -> None:
        backoff = ReconnectBackoff(initial_delay=0.1, max_delay=30.0)
        backoff.next_delay()
        backoff.next_delay()
        assert backoff.attempt == 2

        backoff.reset()

        assert backoff.attempt == 0
        assert not backoff.exhausted
        assert backoff.next_delay() == pytest.approx(0.1)


class TestBackoffValidation:
    def test_rejects_non_positive_initial(self) -> None:
        with pytest.raises(ValueError):
            ReconnectBackoff(initial_delay=0)

    def test_rejects_max_below_initial(self) -> None:
        with pytest.raises(ValueError):
            ReconnectBackoff(initial_delay=5.0, max_delay=1.0)

    def test_rejects_shrinking_multiplier(self) -> None:
        with pytest.raises(ValueError):
            ReconnectBackoff(multiplier=0.5)
