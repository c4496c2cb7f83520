"""세션 정리 에이전트 (SessionSweepAgent)

sweep_interval마다 만료 세션을 일괄 제거한다.
접근 시 지연 만료와 함께 동작하며, 어느 쪽이 먼저 제거해도 결과는 같다.
"""

from __future__ import annotations

import logging

from alchemist.agents.base import BaseAgent
from alchemist.skills.session_manager import SessionManager

logger = logging.getLogger("alchemist.agent.sweeper")


class SessionSweepAgent(BaseAgent):
    """만료 세션 주기 정리"""

    def __init__(self, sessions: SessionManager, interval: float) -> None:
        super().__init__("session_sweeper")
        self._sessions = sessions
        self._interval = interval
        self.total_removed = 0

    async def setup(self) -> None:
        logger.info("SessionSweepAgent 초기화 (주기 %.0fs)", self._interval)

    async def run(self) -> None:
        while not self._stop_event.is_set():
            if await self._sleep(self._interval):
                break
            self.sweep()

    def sweep(self) -> int:
        try:
            removed = self._sessions.expire_sweep()
        except Exception:
            logger.exception("세션 정리 오류")
            return 0
        self.total_removed += removed
        return removed

    async def teardown(self) -> None:
        logger.info("SessionSweepAgent 정리 완료 (누적 %d개 제거)", self.total_removed)
