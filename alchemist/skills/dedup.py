"""중복 메시지 제거 스킬

dedup 윈도우 안에서 이미 본 엔벨로프 id를 기억한다.
버스의 at-least-once 전달을 에이전트 관점의 effectively-once로 바꾼다.
"""

from __future__ import annotations

from collections import OrderedDict
from time import monotonic
from typing import Callable, Optional


class DedupWindow:
    """시간 제한 중복 id 집합

    OrderedDict는 최초 관측 순서를 유지하므로 만료 정리는
    앞에서부터 윈도우 안의 첫 항목을 만날 때까지만 진행한다.
    max_entries를 넘으면 가장 오래된 기록부터 버린다.
    """

    __slots__ = ("_window", "_max_entries", "_records", "_clock")

    def __init__(
        self,
        window: float = 120.0,
        max_entries: int = 10_000,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._window = window
        self._max_entries = max(max_entries, 1)
        self._records: OrderedDict[str, float] = OrderedDict()
        self._clock = clock

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, envelope_id: object) -> bool:
        return envelope_id in self._records

    def check_and_record(self, envelope_id: str) -> bool:
        """중복이면 True. 처음 보는 id는 기록 후 False."""
        now = self._clock()
        self.purge(now)
        if envelope_id in self._records:
            return True
        self._records[envelope_id] = now
        while len(self._records) > self._max_entries:
            self._records.popitem(last=False)
        return False

    def purge(self, now: Optional[float] = None) -> int:
        """윈도우가 지난 기록 제거. 제거 수 반환."""
        if now is None:
            now = self._clock()
        removed = 0
        while self._records:
            seen_at = next(iter(self._records.values()))
            if now - seen_at <= self._window:
                break
            self._records.popitem(last=False)
            removed += 1
        return removed
