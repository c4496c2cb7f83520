"""디스패처

수신 메시지 1건을 처리한다:
  주제 분류 → (상태 조회면 즉시 응답) → 엔벨로프 디코딩
  → 연산 확인 → 페이로드 검증 → 핸들러 실행(시간 제한) → 응답/이벤트 생성

버스 I/O는 하지 않는다. 발행할 응답과 이벤트를 DispatchOutcome으로 돌려준다.

오류 처리:
  - 쿼리/대화: 오류 응답 (reply_to가 있을 때)
  - 명령: 알 수 없는 유형은 로그 후 폐기, 그 외 오류는 <type>_failed 이벤트
  - 핸들러 예외는 HandlerFailure로 변환 (디스패치 루프는 죽지 않는다)
  - 시간 초과 핸들러는 중단하지 않고 버려두며, 늦은 결과는 로그만 남긴다
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from time import monotonic
from typing import Any, Optional

from alchemist.agent.metrics import DispatchMetrics
from alchemist.agents.health_agent import HealthAgent
from alchemist.models.envelope import (
    Envelope,
    EventEnvelope,
    InboundMessage,
    Response,
)
from alchemist.models.errors import (
    AgentError,
    HandlerFailure,
    HandlerTimeout,
    UnknownType,
)
from alchemist.models.operations import MessageKind, OperationType
from alchemist.models.subjects import SubjectLayout
from alchemist.skills.base import HandlerContext, Registration
from alchemist.skills.codec import decode_envelope
from alchemist.skills.registry import HandlerRegistry
from alchemist.skills.session_manager import SessionManager

logger = logging.getLogger("alchemist.agent.dispatcher")

DEFAULT_HANDLER_TIMEOUT = 30.0


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """디스패치 결과: 발행할 응답과 이벤트 (없으면 None)"""

    reply_to: Optional[str] = None
    response: Optional[Response] = None
    event_subject: Optional[str] = None
    event: Optional[EventEnvelope] = None

    @property
    def is_empty(self) -> bool:
        return self.response is None and self.event is None


class Dispatcher:
    """메시지 → 핸들러 라우팅"""

    def __init__(
        self,
        registry: HandlerRegistry,
        sessions: SessionManager,
        health: HealthAgent,
        layout: SubjectLayout,
        agent_id: str,
        handler_timeout: float = DEFAULT_HANDLER_TIMEOUT,
        metrics: Optional[DispatchMetrics] = None,
    ) -> None:
        self._registry = registry
        self._sessions = sessions.handle()
        self._health = health
        self._layout = layout
        self._agent_id = agent_id
        self._handler_timeout = handler_timeout
        self._metrics = metrics
        # 시간 초과로 버려진 핸들러 태스크 (완료 시 제거)
        self._abandoned: set[asyncio.Task[Any]] = set()

    @property
    def abandoned_count(self) -> int:
        return len(self._abandoned)

    async def dispatch(self, message: InboundMessage) -> DispatchOutcome:
        classified = self._layout.classify(message.subject)
        if classified is None:
            logger.warning("처리할 수 없는 주제: %s", message.subject)
            return DispatchOutcome()

        kind, token = classified
        if kind is MessageKind.HEALTH:
            return self._health_reply(message)

        started = monotonic()
        envelope: Optional[Envelope] = None
        try:
            envelope = decode_envelope(message, kind, token)
            operation = OperationType.from_wire(kind, envelope.type_tag)
            registration = self._lookup(operation)
            payload = registration.schema.validate(envelope.payload)
            result = await self._invoke(operation, registration, payload, envelope)
        except UnknownType as e:
            if self._metrics is not None:
                self._metrics.record_unknown()
            if kind is MessageKind.COMMAND:
                logger.warning("알 수 없는 명령 폐기: %s (%s)", token, message.envelope_id)
                return DispatchOutcome()
            return self._failure(kind, token, message, envelope, e, started)
        except AgentError as e:
            return self._failure(kind, token, message, envelope, e, started)

        self._record(True, started)
        return self._success(kind, token, envelope, result)

    # ── 처리 ──

    def _lookup(self, operation: OperationType) -> Registration:
        registration = self._registry.get(operation)
        if registration is None:
            raise UnknownType(f"처리기가 등록되지 않은 유형: {operation.tag}")
        return registration

    async def _invoke(
        self,
        operation: OperationType,
        registration: Registration,
        payload: dict[str, Any],
        envelope: Envelope,
    ) -> Any:
        ctx = HandlerContext(
            envelope=envelope,
            agent_id=self._agent_id,
            sessions=self._sessions if registration.uses_sessions else None,
        )
        task = asyncio.create_task(
            registration.handler(payload, ctx),
            name=f"handler:{operation.tag}:{envelope.id}",
        )
        try:
            done, _ = await asyncio.wait({task}, timeout=self._handler_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            self._abandon(task)
            if self._metrics is not None:
                self._metrics.record_timeout()
            raise HandlerTimeout(
                f"{operation.tag} 처리 시간 초과 ({self._handler_timeout:.1f}s)"
            )

        try:
            return task.result()
        except AgentError:
            raise
        except Exception as e:
            logger.exception("핸들러 오류: %s (%s)", operation.tag, envelope.id)
            raise HandlerFailure(f"{operation.tag} 처리 중 오류: {e}") from e

    def _abandon(self, task: asyncio.Task[Any]) -> None:
        logger.warning("핸들러 시간 초과 → 결과 폐기: %s", task.get_name())
        self._abandoned.add(task)
        task.add_done_callback(self._on_abandoned_done)

    def _on_abandoned_done(self, task: asyncio.Task[Any]) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            logger.debug("버려진 핸들러 취소됨: %s", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("버려진 핸들러 늦은 오류: %s (%s)", task.get_name(), exc)
        else:
            logger.info("버려진 핸들러 늦은 완료 (결과 폐기): %s", task.get_name())

    # ── 결과 생성 ──

    def _health_reply(self, message: InboundMessage) -> DispatchOutcome:
        request_id = message.envelope_id or "health"
        if message.reply_to is None:
            logger.debug("reply_to 없는 상태 조회 무시")
            return DispatchOutcome()
        snapshot = self._health.snapshot()
        return DispatchOutcome(
            reply_to=message.reply_to,
            response=Response.ok(request_id, snapshot.to_wire(), self._agent_id),
        )

    def _success(
        self,
        kind: MessageKind,
        token: str,
        envelope: Envelope,
        result: Any,
    ) -> DispatchOutcome:
        response = None
        if envelope.reply_to:
            response = Response.ok(envelope.id, result, self._agent_id)

        if kind is MessageKind.COMMAND:
            logger.info("명령 완료: %s (%s)", token, envelope.id)
            return DispatchOutcome(
                reply_to=envelope.reply_to,
                response=response,
                event_subject=self._layout.event(token),
                event=EventEnvelope(
                    event_type=f"{token}_completed",
                    payload=result,
                    correlation_id=envelope.id,
                    agent_id=self._agent_id,
                ),
            )

        if response is not None:
            return DispatchOutcome(reply_to=envelope.reply_to, response=response)

        if kind is MessageKind.DIALOG:
            # reply_to 없는 대화 메시지는 이벤트로 응답
            tag = OperationType.DIALOG_MESSAGE.tag
            return DispatchOutcome(
                event_subject=self._layout.event(tag),
                event=EventEnvelope(
                    event_type=tag,
                    payload=result,
                    correlation_id=envelope.id,
                    agent_id=self._agent_id,
                ),
            )

        logger.warning("reply_to 없는 쿼리 결과 폐기: %s (%s)", token, envelope.id)
        return DispatchOutcome()

    def _failure(
        self,
        kind: MessageKind,
        token: str,
        message: InboundMessage,
        envelope: Optional[Envelope],
        error: AgentError,
        started: float,
    ) -> DispatchOutcome:
        self._record(False, started)
        request_id = envelope.id if envelope else (message.envelope_id or "unknown")
        reply_to = envelope.reply_to if envelope else message.reply_to
        logger.warning(
            "%s 처리 실패: %s (%s) [%s] %s",
            kind.value, token, request_id, error.kind.value, error.message,
        )

        response = Response.failure(request_id, error, self._agent_id) if reply_to else None

        if kind is MessageKind.COMMAND or (kind is MessageKind.DIALOG and response is None):
            name = token if kind is MessageKind.COMMAND else OperationType.DIALOG_MESSAGE.tag
            return DispatchOutcome(
                reply_to=reply_to,
                response=response,
                event_subject=self._layout.event("error"),
                event=EventEnvelope(
                    event_type=f"{name}_failed",
                    payload={"error": error.descriptor(), "command_id": request_id},
                    correlation_id=request_id,
                    agent_id=self._agent_id,
                ),
            )

        if response is None:
            logger.debug("reply_to 없는 요청의 오류 응답 생략: %s", request_id)
            return DispatchOutcome()
        return DispatchOutcome(reply_to=reply_to, response=response)

    def _record(self, success: bool, started: float) -> None:
        if self._metrics is not None:
            self._metrics.record_dispatch(success, (monotonic() - started) * 1000)
