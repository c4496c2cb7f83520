"""대화 세션 모델"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from alchemist.models.envelope import format_timestamp


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """대화 기록 한 줄 (sender, content, timestamp)"""

    sender: str
    content: str
    timestamp: datetime

    def to_wire(self) -> dict[str, Any]:
        return {
            "sender": self.sender,
            "content": self.content,
            "timestamp": format_timestamp(self.timestamp),
        }


@dataclass(slots=True)
class Session:
    """대화 세션

    SessionManager만 변경한다. history는 maxlen deque라서
    넘치면 가장 오래된 항목부터 제거된다(FIFO).
    last_touch는 만료 판정용 단조 시계 값이다.
    """

    session_id: str
    created_at: datetime
    last_activity_at: datetime
    last_touch: float
    history: deque[HistoryEntry]
    metadata: dict[str, Any] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def is_expired(self, now: float, timeout: float) -> bool:
        return now - self.last_touch > timeout

    def recent(self, n: int) -> list[HistoryEntry]:
        """최근 n개 항목 (도착 순서 유지)"""
        if n <= 0:
            return []
        items = list(self.history)
        return items[-n:]
