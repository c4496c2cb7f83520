"""pytest 공통 픽스처

테스트용 빠른 설정, 인메모리 버스(Redis pub/sub 모사), 모의 언어 모델을 제공한다.
"""

from __future__ import annotations

import asyncio
import json
from fnmatch import fnmatchcase
from typing import Any, Callable, Optional, Sequence

import pytest

from alchemist.models.config import (
    AgentConfig,
    BusConfig,
    DialogConfig,
    IdentityConfig,
    RetryConfig,
    ServiceConfig,
)
from alchemist.models.envelope import InboundMessage
from alchemist.models.errors import BusConnectionError
from alchemist.skills.model_provider import ModelMessage, ModelResponse


class InMemoryBroker:
    """프로세스 내 pub/sub 브로커. 발행 기록을 보관한다."""

    def __init__(self) -> None:
        self.available = True
        self.published: list[tuple[str, bytes]] = []
        self._transports: list[FakeTransport] = []

    def attach(self, transport: FakeTransport) -> None:
        if transport not in self._transports:
            self._transports.append(transport)

    def detach(self, transport: FakeTransport) -> None:
        if transport in self._transports:
            self._transports.remove(transport)

    async def publish(self, channel: str, data: bytes) -> None:
        self.published.append((channel, data))
        for transport in list(self._transports):
            transport.offer(channel, data)

    async def inject(self, channel: str, body: dict[str, Any]) -> None:
        """외부 발신자 흉내: JSON 본문 발행"""
        await self.publish(channel, json.dumps(body).encode("utf-8"))

    def bodies(self, pattern: str) -> list[dict[str, Any]]:
        """패턴에 맞는 주제로 발행된 본문 목록"""
        return [
            json.loads(data)
            for channel, data in self.published
            if fnmatchcase(channel, pattern)
        ]


class FakeTransport:
    """BusTransport 인메모리 구현

    fail_connects: 처음 N번의 connect()를 실패시킨다.
    """

    def __init__(self, broker: InMemoryBroker, fail_connects: int = 0) -> None:
        self.broker = broker
        self.fail_connects = fail_connects
        self.connect_attempts = 0
        self.connected = False
        self.patterns: set[str] = set()
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._broken = False

    async def connect(self) -> None:
        self.connect_attempts += 1
        if self.fail_connects > 0 or not self.broker.available:
            self.fail_connects = max(self.fail_connects - 1, 0)
            raise BusConnectionError("연결 거부 (테스트)")
        self._broken = False
        self.connected = True
        self.broker.attach(self)

    async def psubscribe(self, *patterns: str) -> None:
        if not self.connected:
            raise BusConnectionError("미연결")
        self.patterns.update(patterns)

    async def get_message(self, timeout: float) -> Optional[dict[str, Any]]:
        if self._broken or not self.connected:
            self.connected = False
            self.broker.detach(self)
            raise BusConnectionError("연결 끊김 (테스트)")
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def publish(self, channel: str, data: bytes) -> None:
        if not self.connected:
            raise BusConnectionError("미연결")
        await self.broker.publish(channel, data)

    async def close(self) -> None:
        self.connected = False
        self.patterns.clear()
        self.broker.detach(self)

    def offer(self, channel: str, data: bytes) -> None:
        # Redis처럼 매칭되는 패턴마다 pmessage 1건
        for pattern in self.patterns:
            if fnmatchcase(channel, pattern):
                self._queue.put_nowait({"pattern": pattern, "channel": channel, "data": data})

    def break_connection(self) -> None:
        """다음 수신에서 연결 끊김을 일으킨다"""
        self._broken = True
        self.patterns.clear()
        self.broker.detach(self)


class FakeModelProvider:
    """언어 모델 모의 객체. 호출 기록을 남긴다."""

    def __init__(
        self,
        reply: str = "모의 응답",
        reachable: bool = True,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ) -> None:
        self.reply = reply
        self.reachable = reachable
        self.delay = delay
        self.error = error
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def generate(
        self,
        prompt: str,
        history: Sequence[ModelMessage] = (),
        system_prompt: Optional[str] = None,
    ) -> ModelResponse:
        self.calls.append({
            "prompt": prompt,
            "history": list(history),
            "system_prompt": system_prompt,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ModelResponse(content=self.reply, model="fake", prompt_tokens=3, completion_tokens=5)

    async def health_check(self) -> bool:
        return self.reachable

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fast_config() -> AgentConfig:
    """테스트용 빠른 설정 (짧은 백오프/타임아웃)"""
    return AgentConfig(
        identity=IdentityConfig(agent_id="alchemist-test"),
        bus=BusConfig(
            servers=["memory://test"],
            retry=RetryConfig(max_attempts=3, initial_delay=0.01, max_delay=0.04, multiplier=2.0),
            publish_timeout=0.5,
            drain_grace=0.2,
        ),
        dialog=DialogConfig(max_history=100, context_window=10, session_timeout=3600.0),
        service=ServiceConfig(
            handler_timeout=1.0,
            health_check_interval=60.0,
            shutdown_timeout=2.0,
        ),
    )


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker()


@pytest.fixture
def transport_factory(broker: InMemoryBroker) -> Callable[..., FakeTransport]:
    def _make(fail_connects: int = 0) -> FakeTransport:
        return FakeTransport(broker, fail_connects=fail_connects)
    return _make


@pytest.fixture
def fake_provider() -> FakeModelProvider:
    return FakeModelProvider()


@pytest.fixture
def inbound() -> Callable[..., InboundMessage]:
    """InboundMessage 생성 헬퍼"""
    def _make(subject: str, body: Optional[dict[str, Any]], pattern: str = "") -> InboundMessage:
        data = json.dumps(body).encode("utf-8") if body is not None else b"not json"
        return InboundMessage(subject=subject, pattern=pattern, data=data, body=body)
    return _make
