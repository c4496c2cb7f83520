"""에이전트 서비스 (AgentService)

구성 요소를 연결하고 전체 수명을 제어한다:
  BusGateway       - 버스 연결 (백그라운드 에이전트)
  HealthAgent      - 상태 집계 (상시 점검)
  SessionSweepAgent- 만료 세션 정리
  Dispatcher       - 수신 메시지 1건당 태스크 1개로 처리

흐름:
  BusGateway 구독 → Dispatcher → (응답 | 이벤트) → BusGateway 발행

라이프사이클: IDLE → RUNNING → STOPPING → STOPPED
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto
from time import monotonic
from typing import Any, Optional, Sequence

from alchemist.agent.metrics import DispatchMetrics
from alchemist.agents.bus_gateway import BusGateway, Subscription
from alchemist.agents.dispatcher import Dispatcher
from alchemist.agents.health_agent import HealthAgent
from alchemist.agents.sweeper import SessionSweepAgent
from alchemist.models.config import AgentConfig
from alchemist.models.envelope import InboundMessage
from alchemist.models.errors import BusConnectionError
from alchemist.skills.base import BaseSkill
from alchemist.skills.concepts import ConceptSkill
from alchemist.skills.dialog import DialogSkill
from alchemist.skills.model_provider import ModelProvider, create_provider
from alchemist.skills.redis_transport import BusTransport
from alchemist.skills.registry import build_registry
from alchemist.skills.session_manager import SessionManager
from alchemist.skills.visualization import VisualizationSkill
from alchemist.skills.workflow import WorkflowSkill

logger = logging.getLogger("alchemist.agent.orchestrator")


class ServiceState(Enum):
    IDLE = auto()
    RUNNING = auto()
    STOPPING = auto()
    STOPPED = auto()


def default_skills(config: AgentConfig, provider: ModelProvider) -> list[BaseSkill]:
    """기본 역량 스킬 구성"""
    return [
        ConceptSkill(provider),
        VisualizationSkill(provider, config.graph),
        WorkflowSkill(config.workflow),
        DialogSkill(provider, config.identity.name),
    ]


class AgentService:
    """에이전트 프로세스 총괄

    단일 프로세스 = 단일 AgentService 인스턴스.
    """

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        provider: Optional[ModelProvider] = None,
        transport: Optional[BusTransport] = None,
        skills: Optional[Sequence[BaseSkill]] = None,
    ) -> None:
        self._config = config or AgentConfig()
        self._state = ServiceState.IDLE
        self._metrics = DispatchMetrics()
        self._provider = provider or create_provider(self._config.model)
        agent_id = self._config.identity.agent_id

        self._health = HealthAgent(self._config, self._provider, self._metrics)
        self._sessions = SessionManager(
            self._config.dialog,
            on_count_change=self._health.record_session_count,
        )
        self._gateway = BusGateway(
            self._config.bus,
            transport=transport,
            gateway_id=agent_id,
            metrics=self._metrics,
        )
        self._gateway.add_state_listener(self._health.record_bus_state)

        self._skills = list(skills) if skills is not None else default_skills(
            self._config, self._provider,
        )
        self._dispatcher = Dispatcher(
            registry=build_registry(self._skills, self._config.identity),
            sessions=self._sessions,
            health=self._health,
            layout=self._gateway.layout,
            agent_id=agent_id,
            handler_timeout=self._config.service.handler_timeout,
            metrics=self._metrics,
        )
        self._sweeper = SessionSweepAgent(self._sessions, self._config.dialog.sweep_interval)

        self._agent_tasks: list[asyncio.Task[Any]] = []
        self._consumer_tasks: list[asyncio.Task[Any]] = []
        self._inflight: set[asyncio.Task[Any]] = set()
        self._ready = asyncio.Event()
        self._stop_requested = asyncio.Event()

    # ── 조회 ──

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def metrics(self) -> DispatchMetrics:
        return self._metrics

    @property
    def gateway(self) -> BusGateway:
        return self._gateway

    @property
    def health(self) -> HealthAgent:
        return self._health

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    async def wait_ready(self, timeout: Optional[float] = None) -> bool:
        """구독 등록 + 버스 연결까지 대기"""
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return await self._gateway.wait_connected(timeout)

    # ── 실행 ──

    def stop(self) -> None:
        """외부에서 안전 종료 요청 (Ctrl+C 등)"""
        if self._state in (ServiceState.IDLE, ServiceState.RUNNING):
            logger.info("종료 요청 수신")
            self._state = ServiceState.STOPPING
            self._stop_requested.set()

    async def run(self) -> DispatchMetrics:
        """서비스 실행 (blocking). stop() 호출 시 정상 종료 후 반환."""
        if self._state is ServiceState.STOPPING:
            return self._metrics
        self._state = ServiceState.RUNNING
        start_time = monotonic()
        identity = self._config.identity
        logger.info("에이전트 시작: %s (%s) v%s", identity.name, identity.agent_id, identity.version)
        logger.info(
            "설정: 버스=%s, 접두사=%s, 모델=%s, 핸들러 제한=%.0fs",
            ",".join(self._config.bus.servers),
            self._config.bus.subject_prefix,
            self._config.model.model,
            self._config.service.handler_timeout,
        )

        try:
            for skill in self._skills:
                await skill.setup()

            self._agent_tasks = [
                asyncio.create_task(self._gateway.start(), name="bus_gateway"),
                asyncio.create_task(self._health.start(), name="health_agent"),
                asyncio.create_task(self._sweeper.start(), name="session_sweeper"),
            ]
            for pattern in self._gateway.layout.inbound_patterns():
                sub = await self._gateway.subscribe(pattern)
                self._consumer_tasks.append(
                    asyncio.create_task(self._consume(sub), name=f"consumer:{pattern}")
                )
            self._ready.set()

            await self._wait_for_stop()

        finally:
            await self._shutdown()
            for skill in self._skills:
                try:
                    await skill.teardown()
                except Exception:
                    logger.exception("스킬 정리 오류: %s", skill.name)
            await self._provider.close()
            elapsed = monotonic() - start_time
            logger.info("에이전트 종료 (%.1f분 경과)", elapsed / 60)
            self._state = ServiceState.STOPPED

        return self._metrics

    async def _wait_for_stop(self) -> None:
        gateway_task = self._agent_tasks[0]
        while not self._stop_requested.is_set():
            if gateway_task.done():
                logger.error("BusGateway 비정상 종료 → 서비스 종료")
                break
            try:
                await asyncio.wait_for(
                    asyncio.shield(self._stop_requested.wait()),
                    timeout=1.0,
                )
            except asyncio.TimeoutError:
                continue

    async def _consume(self, subscription: Subscription) -> None:
        """구독 1개 소비: 메시지마다 처리 태스크 생성"""
        async for message in subscription:
            task = asyncio.create_task(self._handle(message))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
        logger.debug("구독 종료: %s", subscription.pattern)

    async def _handle(self, message: InboundMessage) -> None:
        try:
            outcome = await self._dispatcher.dispatch(message)
            if outcome.response is not None and outcome.reply_to:
                await self._gateway.publish(outcome.reply_to, outcome.response)
            if outcome.event is not None and outcome.event_subject:
                await self._gateway.publish(outcome.event_subject, outcome.event)
        except BusConnectionError as e:
            logger.warning("결과 발행 실패: %s (%s)", message.subject, e.message)
        except Exception:
            logger.exception("메시지 처리 오류: %s", message.subject)

    async def _shutdown(self) -> None:
        """Graceful shutdown: 드레인 → 진행 중 처리 대기 → 연결 해제 → 에이전트 종료"""
        self._state = ServiceState.STOPPING
        timeout = self._config.service.shutdown_timeout

        deadline = monotonic() + timeout
        self._gateway.begin_drain()

        # 버퍼에 남은 메시지까지 처리 태스크로 넘어간 뒤에 대기한다
        if self._consumer_tasks:
            await asyncio.wait(self._consumer_tasks, timeout=timeout)

        while self._inflight:
            logger.info("진행 중 메시지 %d건 대기", len(self._inflight))
            _, not_done = await asyncio.wait(
                set(self._inflight),
                timeout=max(0.0, deadline - monotonic()),
            )
            if not_done:
                logger.warning("미완료 메시지 %d건 취소", len(not_done))
                for task in not_done:
                    task.cancel()
                await asyncio.gather(*not_done, return_exceptions=True)
                break

        await self._gateway.drain(self._config.bus.drain_grace)
        self._health.request_stop()
        self._sweeper.request_stop()

        tasks = self._agent_tasks + self._consumer_tasks
        if not tasks:
            return

        try:
            await asyncio.wait_for(
                asyncio.gather(*tasks, return_exceptions=True),
                timeout=timeout,
            )
            logger.debug("모든 에이전트 정상 종료")
        except asyncio.TimeoutError:
            logger.warning("강제 종료 (%.0fs 타임아웃)", timeout)
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
