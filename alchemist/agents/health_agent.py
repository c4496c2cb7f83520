"""상태 집계 에이전트 (HealthAgent)

가동 시간, 활성 세션 수, 마지막 버스 연결 상태, 모델 도달 가능 여부를
메모리에 유지하고 상태 조회에 즉시 응답한다.

record_* 메서드는 비차단이며 마지막 값이 이긴다(last-write-wins).
주기적으로 모델 서버를 점검하고 프로세스 메모리를 갱신한다.
"""

from __future__ import annotations

import logging
from time import monotonic
from typing import Optional

from alchemist.agent.metrics import DispatchMetrics
from alchemist.agent.state import BusStatus, ConnectionState
from alchemist.agents.base import BaseAgent
from alchemist.models.config import AgentConfig
from alchemist.models.health import (
    STATUS_DEGRADED,
    STATUS_DRAINING,
    STATUS_HEALTHY,
    STATUS_UNHEALTHY,
    HealthSnapshot,
)
from alchemist.skills.model_provider import ModelProvider

logger = logging.getLogger("alchemist.agent.health")


class HealthAgent(BaseAgent):
    """상태 집계 에이전트 (항상 활성)"""

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        provider: Optional[ModelProvider] = None,
        metrics: Optional[DispatchMetrics] = None,
    ) -> None:
        super().__init__("health_agent")
        self._config = config or AgentConfig()
        self._provider = provider
        self._metrics = metrics
        self._start_time = monotonic()

        self._bus_state = BusStatus(ConnectionState.DISCONNECTED)
        self._session_count = 0
        self._model_reachable: Optional[bool] = None

    @property
    def metrics(self) -> Optional[DispatchMetrics]:
        return self._metrics

    # ── 상태 기록 ──

    def record_bus_state(self, status: BusStatus) -> None:
        if status.state is not self._bus_state.state:
            logger.info("버스 상태 변경: %s → %s", self._bus_state.label(), status.label())
        self._bus_state = status

    def record_session_count(self, count: int) -> None:
        self._session_count = count

    def record_model_reachable(self, reachable: bool) -> None:
        if reachable is not self._model_reachable:
            if reachable:
                logger.info("모델 서버 도달 가능")
            else:
                logger.warning("모델 서버 도달 불가")
        self._model_reachable = reachable

    # ── 스냅샷 ──

    @property
    def uptime(self) -> float:
        return monotonic() - self._start_time

    def snapshot(self) -> HealthSnapshot:
        """캐시된 상태로 스냅샷 계산 (I/O 없음)"""
        bus = self._bus_state
        if bus.state is ConnectionState.DRAINING:
            status = STATUS_DRAINING
        elif not bus.is_connected:
            status = STATUS_UNHEALTHY
        elif self._model_reachable is False:
            status = STATUS_DEGRADED
        else:
            status = STATUS_HEALTHY

        metadata = {
            "agent_id": self._config.identity.agent_id,
            "name": self._config.identity.name,
            "model": self._config.model.model,
        }
        if self._metrics is not None:
            metadata.update(self._metrics.as_dict())

        return HealthSnapshot(
            status=status,
            version=self._config.identity.version,
            uptime=self.uptime,
            active_session_count=self._session_count,
            bus_state=bus,
            model_provider_reachable=self._model_reachable,
            metadata=metadata,
        )

    # ── 라이프사이클 ──

    async def setup(self) -> None:
        self._start_time = monotonic()
        logger.info(
            "HealthAgent 초기화 완료 (점검 주기 %.0fs)",
            self._config.service.health_check_interval,
        )

    async def run(self) -> None:
        """주기적 상태 점검 루프"""
        await self._check_health()
        while not self._stop_event.is_set():
            if await self._sleep(self._config.service.health_check_interval):
                break  # stop_event 설정됨
            await self._check_health()

    async def teardown(self) -> None:
        if self._metrics is not None:
            logger.info("HealthAgent 정리 완료\n%s", self._metrics.summary())
        else:
            logger.info("HealthAgent 정리 완료")

    async def _check_health(self) -> None:
        """모델 서버 점검 + 메모리 갱신"""
        if self._metrics is not None:
            self._metrics.update_memory()

        if self._provider is not None:
            try:
                reachable = await self._provider.health_check()
            except Exception as e:
                logger.warning("모델 서버 점검 오류: %s", e)
                reachable = False
            self.record_model_reachable(reachable)

        snapshot = self.snapshot()
        logger.debug(
            "상태 점검: %s, 가동 %.0f분, 세션 %d개, 버스 %s",
            snapshot.status,
            snapshot.uptime / 60,
            snapshot.active_session_count,
            snapshot.bus_state.label(),
        )
