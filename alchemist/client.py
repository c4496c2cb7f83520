"""에이전트 클라이언트

자체 BusGateway로 실행 중인 에이전트에 명령/쿼리/상태 조회/대화 메시지를 보낸다.

    async with AgentClient(config.bus) as client:
        resp = await client.query("list_concepts")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from alchemist.agents.bus_gateway import BusGateway, Subscription
from alchemist.models.config import BusConfig
from alchemist.models.envelope import Envelope, Response, new_id
from alchemist.models.errors import BusConnectionError
from alchemist.models.operations import MessageKind, OperationType
from alchemist.skills.redis_transport import BusTransport

logger = logging.getLogger("alchemist.client")

DEFAULT_TIMEOUT = 10.0


class AgentClient:
    """에이전트 버스 클라이언트 (async context manager)"""

    def __init__(
        self,
        config: Optional[BusConfig] = None,
        transport: Optional[BusTransport] = None,
        timeout: float = DEFAULT_TIMEOUT,
        origin: str = "alchemist-client",
    ) -> None:
        self._config = config or BusConfig()
        self._gateway = BusGateway(self._config, transport=transport)
        self._timeout = timeout
        self._origin = origin
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def gateway(self) -> BusGateway:
        return self._gateway

    async def connect(self, timeout: Optional[float] = None) -> None:
        """게이트웨이 시작 후 연결 대기. 실패 시 BusConnectionError."""
        if self._task is None:
            self._task = asyncio.create_task(self._gateway.start(), name="client_gateway")
        if not await self._gateway.wait_connected(timeout or self._timeout):
            raise BusConnectionError("에이전트 버스에 연결할 수 없습니다")

    async def close(self) -> None:
        if self._task is None:
            return
        self._gateway.request_stop()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def __aenter__(self) -> AgentClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ── 송신 ──

    async def send_command(
        self,
        command_type: str,
        payload: Optional[dict[str, Any]] = None,
        envelope_id: Optional[str] = None,
    ) -> str:
        """명령 발행 (fire-and-forget). 엔벨로프 id 반환."""
        envelope = Envelope.command(command_type, payload, self._origin, envelope_id)
        await self._gateway.publish(self._gateway.layout.command(command_type), envelope)
        logger.debug("명령 발행: %s (%s)", command_type, envelope.id)
        return envelope.id

    async def request_command(
        self,
        command_type: str,
        payload: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Response:
        """명령 발행 후 처리 결과 응답 대기"""
        envelope = Envelope.command(command_type, payload, self._origin)
        return await self._gateway.request(
            self._gateway.layout.command(command_type),
            envelope,
            timeout or self._timeout,
        )

    async def query(
        self,
        query_type: str,
        parameters: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
        envelope_id: Optional[str] = None,
    ) -> Response:
        envelope = Envelope.query(query_type, parameters, self._origin, envelope_id)
        return await self._gateway.request(
            self._gateway.layout.query(query_type),
            envelope,
            timeout or self._timeout,
        )

    async def health(self, timeout: Optional[float] = None) -> Response:
        envelope = Envelope.query("health", origin=self._origin)
        return await self._gateway.request(
            self._gateway.layout.health_subject,
            envelope,
            timeout or self._timeout,
        )

    async def start_dialog(
        self,
        user_id: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Response:
        parameters: dict[str, Any] = {}
        if user_id:
            parameters["user_id"] = user_id
        if context:
            parameters["context"] = context
        return await self.query(OperationType.START_DIALOG.tag, parameters, timeout)

    async def send_dialog(
        self,
        dialog_id: str,
        content: str,
        sender: str = "user",
        metadata: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Response:
        envelope = Envelope(
            id=new_id(),
            type_tag=OperationType.DIALOG_MESSAGE.tag,
            kind=MessageKind.DIALOG,
            payload={"content": content, "sender": sender, "metadata": metadata or {}},
            origin=self._origin,
        )
        return await self._gateway.request(
            self._gateway.layout.dialog(dialog_id),
            envelope,
            timeout or self._timeout,
        )

    async def subscribe_events(self, pattern: Optional[str] = None) -> Subscription:
        """이벤트 구독 (기본: 모든 이벤트)"""
        return await self._gateway.subscribe(pattern or self._gateway.layout.events_pattern)
