"""대화 세션 관리 스킬 (SessionManager)

세션 생성/조회/만료를 담당한다. 여러 디스패치가 동시에 접근해도 안전하다.

잠금 규칙:
  - _lock: 세션 맵 구조 변경(생성/삭제/조회) 보호
  - Session.lock: 세션별 history 변경 직렬화
  어느 잠금도 I/O 동안 잡지 않는다.

만료: 접근 시 지연 판정(lazy) + 선택적 주기 정리(expire_sweep).
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from time import monotonic
from typing import Any, Callable, Optional

from alchemist.models.config import DialogConfig
from alchemist.models.envelope import utc_now
from alchemist.models.errors import SessionExpired, SessionNotFound
from alchemist.models.session import HistoryEntry, Session

logger = logging.getLogger("alchemist.skill.sessions")


class SessionManager:
    """대화 세션 저장소"""

    def __init__(
        self,
        config: Optional[DialogConfig] = None,
        clock: Callable[[], float] = monotonic,
        on_count_change: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._config = config or DialogConfig()
        if self._config.max_history < 1:
            raise ValueError("max_history는 1 이상이어야 합니다")
        self._clock = clock
        self._on_count_change = on_count_change
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    @property
    def config(self) -> DialogConfig:
        return self._config

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    # ── 생성/종료 ──

    def create(self, metadata: Optional[dict[str, Any]] = None) -> str:
        """빈 세션 생성 후 session_id 반환"""
        session_id = str(uuid.uuid4())
        now = utc_now()
        session = Session(
            session_id=session_id,
            created_at=now,
            last_activity_at=now,
            last_touch=self._clock(),
            history=deque(maxlen=self._config.max_history),
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._sessions[session_id] = session
            count = len(self._sessions)
        logger.info("세션 생성: %s (활성 %d)", session_id, count)
        self._notify(count)
        return session_id

    def end(self, session_id: str) -> None:
        """세션 명시적 종료. 없거나 만료되었으면 SessionNotFound/SessionExpired."""
        self._lookup(session_id)
        with self._lock:
            removed = self._sessions.pop(session_id, None)
            count = len(self._sessions)
        if removed is None:
            raise SessionNotFound(session_id)
        logger.info("세션 종료: %s (활성 %d)", session_id, count)
        self._notify(count)

    # ── 조회/추가 ──

    def get(self, session_id: str) -> Session:
        """세션 객체 조회 (읽기 전용으로 사용할 것)"""
        return self._lookup(session_id)

    def append(self, session_id: str, sender: str, content: str) -> None:
        """history에 항목 추가. max_history 초과 시 가장 오래된 항목 제거."""
        session = self._lookup(session_id)
        with session.lock:
            session.history.append(HistoryEntry(sender, content, utc_now()))
            session.last_activity_at = utc_now()
            session.last_touch = self._clock()

    def context(self, session_id: str) -> list[HistoryEntry]:
        """최근 context_window개 항목 (도착 순서). 세션을 변경하지 않는다."""
        session = self._lookup(session_id)
        with session.lock:
            return session.recent(self._config.context_window)

    def history(self, session_id: str) -> list[HistoryEntry]:
        """전체 history 복사본"""
        session = self._lookup(session_id)
        with session.lock:
            return list(session.history)

    # ── 만료 ──

    def expire_sweep(self, now: Optional[float] = None) -> int:
        """만료 세션 일괄 제거. 제거 수 반환. 멱등."""
        if now is None:
            now = self._clock()
        timeout = self._config.session_timeout
        with self._lock:
            expired = [
                sid for sid, s in self._sessions.items()
                if s.is_expired(now, timeout)
            ]
            for sid in expired:
                del self._sessions[sid]
            count = len(self._sessions)
        if expired:
            logger.info("만료 세션 %d개 정리 (활성 %d)", len(expired), count)
            self._notify(count)
        return len(expired)

    def _lookup(self, session_id: str) -> Session:
        """세션 조회 + 지연 만료 판정. 만료 시 제거 후 SessionExpired."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            if not session.is_expired(self._clock(), self._config.session_timeout):
                return session
            del self._sessions[session_id]
            count = len(self._sessions)
        logger.info("세션 만료: %s (활성 %d)", session_id, count)
        self._notify(count)
        raise SessionExpired(session_id)

    def _notify(self, count: int) -> None:
        if self._on_count_change is None:
            return
        try:
            self._on_count_change(count)
        except Exception:
            logger.exception("세션 수 콜백 오류")

    def handle(self) -> SessionHandle:
        return SessionHandle(self)


class SessionHandle:
    """핸들러에 전달되는 제한된 세션 접근 핸들 (읽기/추가)"""

    __slots__ = ("_manager",)

    def __init__(self, manager: SessionManager) -> None:
        self._manager = manager

    @property
    def max_history(self) -> int:
        return self._manager.config.max_history

    def create(self, metadata: Optional[dict[str, Any]] = None) -> str:
        return self._manager.create(metadata)

    def append(self, session_id: str, sender: str, content: str) -> None:
        self._manager.append(session_id, sender, content)

    def context(self, session_id: str) -> list[HistoryEntry]:
        return self._manager.context(session_id)

    def history(self, session_id: str) -> list[HistoryEntry]:
        return self._manager.history(session_id)

    def metadata(self, session_id: str) -> dict[str, Any]:
        return dict(self._manager.get(session_id).metadata)

    def end(self, session_id: str) -> None:
        self._manager.end(session_id)
