"""Redis pub/sub 전송 스킬

BusGateway가 사용하는 저수준 전송 계층.
주제 = Redis 채널, 주제 패턴 = PSUBSCRIBE glob 패턴.
redis 예외는 모두 BusConnectionError로 변환한다.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from alchemist.models.errors import BusConnectionError

logger = logging.getLogger("alchemist.skill.redis")


class BusTransport(Protocol):
    """BusGateway가 요구하는 전송 인터페이스 (테스트에서 인메모리 구현으로 대체)"""

    async def connect(self) -> None: ...

    async def psubscribe(self, *patterns: str) -> None: ...

    async def get_message(self, timeout: float) -> Optional[dict[str, Any]]: ...

    async def publish(self, channel: str, data: bytes) -> None: ...

    async def close(self) -> None: ...


class RedisTransport:
    """Redis pub/sub 연결 1개를 감싼다.

    get_message()는 {"pattern", "channel", "data"} dict 또는 None(타임아웃)을 반환한다.
    """

    def __init__(
        self,
        servers: list[str],
        connect_timeout: float = 5.0,
    ) -> None:
        if not servers:
            raise ValueError("버스 서버 주소가 필요합니다")
        self._servers = list(servers)
        self._connect_timeout = connect_timeout
        self._client: Optional[redis.Redis] = None
        self._pubsub: Optional[Any] = None
        self._server: Optional[str] = None

    @property
    def server(self) -> Optional[str]:
        """현재 연결된 서버 주소"""
        return self._server

    async def connect(self) -> None:
        """서버 목록을 순서대로 시도. 모두 실패하면 BusConnectionError."""
        await self.close()
        errors: list[str] = []
        for url in self._servers:
            client = redis.Redis.from_url(
                url,
                decode_responses=False,
                socket_connect_timeout=self._connect_timeout,
            )
            try:
                await client.ping()
            except (RedisError, OSError) as e:
                errors.append(f"{url}: {e}")
                await client.aclose()
                continue
            self._client = client
            self._pubsub = client.pubsub()
            self._server = url
            logger.info("Redis 연결: %s", url)
            return
        raise BusConnectionError("모든 버스 서버 연결 실패 (" + "; ".join(errors) + ")")

    async def psubscribe(self, *patterns: str) -> None:
        if not patterns:
            return
        pubsub = self._require_pubsub()
        try:
            await pubsub.psubscribe(*patterns)
        except (RedisError, OSError) as e:
            raise BusConnectionError(f"구독 실패: {e}") from e

    async def get_message(self, timeout: float) -> Optional[dict[str, Any]]:
        pubsub = self._require_pubsub()
        try:
            raw = await pubsub.get_message(
                ignore_subscribe_messages=True, timeout=timeout,
            )
        except (RedisError, OSError) as e:
            raise BusConnectionError(f"수신 실패: {e}") from e
        if raw is None or raw.get("type") != "pmessage":
            return None
        return {
            "pattern": _text(raw.get("pattern")),
            "channel": _text(raw.get("channel")),
            "data": raw.get("data") or b"",
        }

    async def publish(self, channel: str, data: bytes) -> None:
        if self._client is None:
            raise BusConnectionError("버스에 연결되어 있지 않습니다")
        try:
            await self._client.publish(channel, data)
        except (RedisError, OSError) as e:
            raise BusConnectionError(f"발행 실패: {e}") from e

    async def close(self) -> None:
        pubsub, client = self._pubsub, self._client
        self._pubsub = None
        self._client = None
        self._server = None
        try:
            if pubsub is not None:
                await pubsub.aclose()
            if client is not None:
                await client.aclose()
        except (RedisError, OSError) as e:
            logger.debug("연결 종료 중 오류 무시: %s", e)

    def _require_pubsub(self) -> Any:
        if self._pubsub is None:
            raise BusConnectionError("버스에 연결되어 있지 않습니다")
        return self._pubsub


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return str(value) if value is not None else ""
