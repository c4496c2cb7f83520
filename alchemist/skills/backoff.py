"""재연결 백오프 스킬

지수 백오프로 재연결 대기 시간을 계산한다.
max_attempts 이후에는 max_delay 간격으로 무기한 재시도한다.
지연 시퀀스는 단조 비감소이며 max_delay를 넘지 않는다.
"""

from __future__ import annotations


class ReconnectBackoff:
    """재연결 간격 계산"""

    __slots__ = (
        "_initial_delay", "_max_delay",
        "_multiplier", "_max_attempts",
        "_attempt",
    )

    def __init__(
        self,
        initial_delay: float = 0.1,
        max_delay: float = 30.0,
        multiplier: float = 2.0,
        max_attempts: int = 5,
    ) -> None:
        if initial_delay <= 0 or max_delay < initial_delay:
            raise ValueError("0 < initial_delay <= max_delay 이어야 합니다")
        if multiplier < 1.0:
            raise ValueError("multiplier는 1 이상이어야 합니다")
        self._initial_delay = initial_delay
        self._max_delay = max_delay
        self._multiplier = multiplier
        self._max_attempts = max(max_attempts, 1)
        self._attempt = 0

    @property
    def attempt(self) -> int:
        """연속 실패 횟수 (연결 성공 시 0)"""
        return self._attempt

    @property
    def exhausted(self) -> bool:
        """max_attempts 소진 → 이후 max_delay 간격 재시도"""
        return self._attempt >= self._max_attempts

    def next_delay(self) -> float:
        """실패 1회 기록 후 다음 시도까지 대기 시간(초)"""
        self._attempt += 1
        if self._attempt > self._max_attempts:
            return self._max_delay
        delay = self._initial_delay * (self._multiplier ** (self._attempt - 1))
        return min(delay, self._max_delay)

    def reset(self) -> None:
        """연결 성공 시 시도 횟수 리셋"""
        self._attempt = 0
