"""버스 게이트웨이 에이전트 (BusGateway)

메시지 버스 연결을 소유하고 관리한다:
  - 연결/재연결 (지수 백오프, 상태 머신 검증)
  - 주제 패턴 구독 → 구독별 비동기 이터레이터
  - 발행, request-reply 상관관계 (reply_to 수신함 + id 기반 future)
  - 수신 메시지 중복 제거 (DedupWindow)
  - 드레인: 새 구독 거부, 구독 종료, 진행 중 요청 대기 후 연결 해제

연결 상태: DISCONNECTED → CONNECTING(n) → CONNECTED → DRAINING → DISCONNECTED
상태 변경은 등록된 리스너에 동기 콜백으로 통지된다.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Optional

from alchemist.agent.metrics import DispatchMetrics
from alchemist.agent.state import BusStatus, ConnectionState, validate_transition
from alchemist.agents.base import BaseAgent
from alchemist.models.config import BusConfig
from alchemist.models.envelope import Envelope, InboundMessage, Response
from alchemist.models.errors import (
    BusConnectionError,
    BusDrainingError,
    InvalidPayload,
    RequestTimeout,
)
from alchemist.models.subjects import SubjectLayout
from alchemist.skills.backoff import ReconnectBackoff
from alchemist.skills.codec import encode, parse_body
from alchemist.skills.dedup import DedupWindow
from alchemist.skills.redis_transport import BusTransport, RedisTransport

logger = logging.getLogger("alchemist.bus.gateway")

StateListener = Callable[[BusStatus], None]

_CLOSED = object()


class Subscription:
    """구독 1개의 수신 버퍼 (async for로 소비)

    버퍼가 가득 차면 새 메시지는 경고와 함께 버려진다.
    close() 이후 남은 메시지를 모두 소비하면 반복이 끝난다.
    """

    def __init__(self, pattern: str, maxsize: int) -> None:
        self.pattern = pattern
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=max(maxsize, 1))
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, message: InboundMessage) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "구독 버퍼 초과 → 메시지 폐기: %s (%s, 누적 %d)",
                message.subject, message.envelope_id, self.dropped,
            )
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass  # 소비자가 버퍼를 비운 뒤 종료를 감지한다

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> InboundMessage:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class BusGateway(BaseAgent):
    """버스 연결 소유 에이전트"""

    READ_TIMEOUT = 1.0  # 수신 대기 주기 (초)

    def __init__(
        self,
        config: Optional[BusConfig] = None,
        transport: Optional[BusTransport] = None,
        gateway_id: Optional[str] = None,
        metrics: Optional[DispatchMetrics] = None,
    ) -> None:
        super().__init__("bus_gateway")
        self._config = config or BusConfig()
        self._gateway_id = gateway_id or uuid.uuid4().hex[:12]
        self._layout = SubjectLayout(self._config.subject_prefix, self._config.dialog_prefix)
        self._inbox = self._layout.inbox(self._gateway_id)
        self._transport: BusTransport = transport or RedisTransport(self._config.servers)
        self._metrics = metrics

        retry = self._config.retry
        self._backoff = ReconnectBackoff(
            initial_delay=retry.initial_delay,
            max_delay=retry.max_delay,
            multiplier=retry.multiplier,
            max_attempts=retry.max_attempts,
        )
        self._dedup = DedupWindow(self._config.dedup_window, self._config.dedup_max_entries)

        self._status = BusStatus(ConnectionState.DISCONNECTED)
        self._listeners: list[StateListener] = []
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._pending: dict[str, asyncio.Future[Response]] = {}
        self._link_up = asyncio.Event()
        self._draining = False

    # ── 조회 ──

    @property
    def gateway_id(self) -> str:
        return self._gateway_id

    @property
    def inbox(self) -> str:
        return self._inbox

    @property
    def layout(self) -> SubjectLayout:
        return self._layout

    @property
    def status(self) -> BusStatus:
        return self._status

    @property
    def backoff(self) -> ReconnectBackoff:
        return self._backoff

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def pending_requests(self) -> int:
        return len(self._pending)

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    async def wait_connected(self, timeout: Optional[float] = None) -> bool:
        """연결될 때까지 대기. 타임아웃이면 False."""
        try:
            await asyncio.wait_for(self._link_up.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # ── 라이프사이클 ──

    async def setup(self) -> None:
        logger.info(
            "BusGateway 초기화 (서버 %d개, 수신함 %s)",
            len(self._config.servers), self._inbox,
        )

    async def run(self) -> None:
        """연결 유지 루프: 연결 → 수신 → 끊김 → 재연결"""
        while not self._stop_event.is_set():
            if not await self._connect_with_backoff():
                break
            await self._read_loop()
            if self._draining:
                break

    async def teardown(self) -> None:
        self._link_up.clear()
        await self._transport.close()
        for subs in self._subscriptions.values():
            for sub in subs:
                sub.close()
        self._subscriptions.clear()
        for future in self._pending.values():
            if not future.done():
                future.set_exception(BusConnectionError("버스 연결이 종료되었습니다"))
        if self._status.state is not ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.DISCONNECTED)
        logger.info("BusGateway 정리 완료")

    # ── 상태 머신 ──

    def _set_state(self, state: ConnectionState, attempt: int = 0) -> None:
        current = self._status.state
        if not validate_transition(current, state):
            logger.warning("허용되지 않은 상태 전이 무시: %s → %s", current.name, state.name)
            return
        self._status = BusStatus(state, attempt)
        logger.debug("버스 상태: %s", self._status.label())
        for listener in self._listeners:
            try:
                listener(self._status)
            except Exception:
                logger.exception("상태 리스너 오류")

    async def _connect_with_backoff(self) -> bool:
        """연결 성공 시 True, 중지/드레인 요청 시 False. 포기하지 않는다."""
        while not self._stop_event.is_set() and not self._draining:
            attempt = self._backoff.attempt + 1
            self._set_state(ConnectionState.CONNECTING, attempt)
            try:
                await self._transport.connect()
                await self._transport.psubscribe(self._inbox, *self._subscriptions)
            except BusConnectionError as e:
                delay = self._backoff.next_delay()
                logger.warning(
                    "버스 연결 실패 (시도 %d): %s → %.1fs 후 재시도",
                    attempt, e.message, delay,
                )
                if self._backoff.exhausted:
                    self._set_state(ConnectionState.DISCONNECTED)
                if await self._sleep(delay):
                    return False
                continue

            self._backoff.reset()
            self._link_up.set()
            self._set_state(ConnectionState.CONNECTED)
            logger.info("버스 연결 완료 (구독 패턴 %d개)", len(self._subscriptions))
            return True
        return False

    async def _read_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                raw = await self._transport.get_message(timeout=self.READ_TIMEOUT)
            except BusConnectionError as e:
                logger.warning("버스 연결 끊김: %s", e.message)
                self._link_up.clear()
                self._set_state(ConnectionState.DISCONNECTED)
                return
            if raw is not None:
                self._route(raw)

    # ── 수신 라우팅 ──

    def _route(self, raw: dict[str, Any]) -> None:
        channel = raw.get("channel", "")
        data = raw.get("data", b"")
        try:
            body: Optional[dict[str, Any]] = parse_body(data)
        except InvalidPayload:
            body = None

        if channel == self._inbox:
            self._resolve(body)
            return

        message = InboundMessage(
            subject=channel,
            pattern=raw.get("pattern", ""),
            data=data,
            body=body,
        )
        envelope_id = message.envelope_id
        if envelope_id is not None and self._dedup.check_and_record(envelope_id):
            logger.debug("중복 메시지 폐기: %s (%s)", envelope_id, channel)
            if self._metrics is not None:
                self._metrics.record_duplicate()
            return

        subs = self._subscriptions.get(message.pattern)
        if not subs:
            logger.debug("구독자 없는 메시지: %s", channel)
            return
        for sub in subs:
            sub.deliver(message)

    def _resolve(self, body: Optional[dict[str, Any]]) -> None:
        """수신함 응답 → 대기 중인 요청 future 완료"""
        if body is None:
            logger.warning("해석할 수 없는 응답 폐기")
            return
        try:
            response = Response.from_wire(body)
        except ValueError as e:
            logger.warning("응답 폐기: %s", e)
            return
        future = self._pending.get(response.id)
        if future is None or future.done():
            logger.debug("대기 요청 없는 응답 폐기: %s", response.id)
            return
        future.set_result(response)

    # ── 공개 API ──

    async def subscribe(self, pattern: str) -> Subscription:
        """주제 패턴 구독. 드레인 중이면 BusDrainingError."""
        if self._draining:
            raise BusDrainingError(f"드레인 중에는 새 구독을 받지 않습니다: {pattern}")
        sub = Subscription(pattern, self._config.subscription_buffer)
        is_new = pattern not in self._subscriptions
        self._subscriptions.setdefault(pattern, []).append(sub)
        if is_new and self._link_up.is_set():
            try:
                await self._transport.psubscribe(pattern)
            except BusConnectionError as e:
                # 재연결 시 전체 패턴을 다시 구독한다
                logger.warning("구독 요청 실패: %s (%s)", pattern, e.message)
        logger.info("구독: %s", pattern)
        return sub

    async def publish(self, subject: str, message: Any) -> None:
        """발행. 미연결이면 publish_timeout까지 연결을 기다린 뒤 BusConnectionError."""
        data = encode(message)
        if not self._link_up.is_set():
            try:
                await asyncio.wait_for(
                    self._link_up.wait(),
                    timeout=self._config.publish_timeout,
                )
            except asyncio.TimeoutError:
                raise BusConnectionError(f"버스 미연결로 발행 실패: {subject}") from None
        await self._transport.publish(subject, data)

    async def request(
        self,
        subject: str,
        envelope: Envelope,
        timeout: float,
    ) -> Response:
        """request-reply. 기한 내 응답이 없으면 RequestTimeout.

        상관관계 항목은 성공/타임아웃 모두에서 제거된다.
        """
        if self._draining:
            raise BusDrainingError(f"드레인 중에는 새 요청을 보내지 않습니다: {subject}")
        if envelope.id in self._pending:
            raise ValueError(f"이미 대기 중인 요청 id: {envelope.id}")

        future: asyncio.Future[Response] = asyncio.get_running_loop().create_future()
        self._pending[envelope.id] = future

        async def _send_and_wait() -> Response:
            await self.publish(subject, envelope.with_reply_to(self._inbox))
            return await future

        try:
            return await asyncio.wait_for(_send_and_wait(), timeout=timeout)
        except asyncio.TimeoutError:
            raise RequestTimeout(
                f"응답 시간 초과: {subject} ({envelope.id}, {timeout:.1f}s)"
            ) from None
        finally:
            self._pending.pop(envelope.id, None)

    def begin_drain(self) -> None:
        """드레인 시작: 새 구독 거부, 기존 구독 이터레이터 종료"""
        if self._draining:
            return
        self._draining = True
        self._set_state(ConnectionState.DRAINING)
        for subs in self._subscriptions.values():
            for sub in subs:
                sub.close()
        logger.info("드레인 시작 (대기 요청 %d건)", len(self._pending))

    async def drain(self, grace: Optional[float] = None) -> None:
        """진행 중 요청을 grace까지 기다린 뒤 연결 해제"""
        self.begin_drain()
        grace = self._config.drain_grace if grace is None else grace
        pending = [f for f in self._pending.values() if not f.done()]
        if pending:
            _, not_done = await asyncio.wait(pending, timeout=grace)
            if not_done:
                logger.warning("드레인 기한 초과: 미완료 요청 %d건", len(not_done))
        self.request_stop()
