"""디스패치 런타임 메트릭 수집"""

from __future__ import annotations

from time import monotonic
from typing import Any

import psutil


class DispatchMetrics:
    """런타임 메트릭 수집 (상태 조회 metadata에 포함)"""

    __slots__ = (
        "total_messages", "succeeded", "failed", "timed_out",
        "unknown_types", "duplicates_dropped",
        "_handle_times", "peak_memory_mb",
        "_start_time",
    )

    def __init__(self) -> None:
        self.total_messages: int = 0
        self.succeeded: int = 0
        self.failed: int = 0
        self.timed_out: int = 0
        self.unknown_types: int = 0
        self.duplicates_dropped: int = 0
        self._handle_times: list[float] = []
        self.peak_memory_mb: float = 0.0
        self._start_time: float = monotonic()

    @property
    def avg_handle_time_ms(self) -> float:
        if not self._handle_times:
            return 0.0
        return sum(self._handle_times) / len(self._handle_times)

    @property
    def uptime_s(self) -> float:
        return monotonic() - self._start_time

    def record_dispatch(self, success: bool, elapsed_ms: float) -> None:
        self.total_messages += 1
        if success:
            self.succeeded += 1
        else:
            self.failed += 1
        self._handle_times.append(elapsed_ms)
        # 최근 100개만 유지
        if len(self._handle_times) > 100:
            self._handle_times = self._handle_times[-50:]

    def record_timeout(self) -> None:
        self.timed_out += 1

    def record_unknown(self) -> None:
        self.unknown_types += 1

    def record_duplicate(self) -> None:
        self.duplicates_dropped += 1

    def update_memory(self) -> None:
        mem_mb = psutil.Process().memory_info().rss / (1024 * 1024)
        self.peak_memory_mb = max(self.peak_memory_mb, mem_mb)

    def as_dict(self) -> dict[str, Any]:
        return {
            "messages_processed": self.total_messages,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "handler_timeouts": self.timed_out,
            "unknown_types": self.unknown_types,
            "duplicates_dropped": self.duplicates_dropped,
            "avg_handle_time_ms": round(self.avg_handle_time_ms, 1),
            "peak_memory_mb": round(self.peak_memory_mb, 1),
        }

    def summary(self) -> str:
        success_rate = self.succeeded / max(self.total_messages, 1) * 100
        return (
            f"=== 서비스 요약 ===\n"
            f"  가동 시간: {self.uptime_s / 60:.1f}분\n"
            f"  처리 메시지: {self.total_messages}건 "
            f"(성공률: {success_rate:.1f}%)\n"
            f"  핸들러 타임아웃: {self.timed_out}건\n"
            f"  중복 제거: {self.duplicates_dropped}건\n"
            f"  평균 처리: {self.avg_handle_time_ms:.0f}ms\n"
            f"  최대 메모리: {self.peak_memory_mb:.1f}MB"
        )
