"""언어 모델 호출 스킬

Ollama HTTP API를 통해 텍스트를 생성한다.
  POST /api/chat  : 시스템 프롬프트 + 대화 맥락 + 프롬프트 → 응답
  GET  /api/tags  : 도달 가능 여부 확인
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Protocol, Sequence

import aiohttp

from alchemist.models.config import ModelConfig
from alchemist.models.errors import ConfigurationError, ModelProviderError

logger = logging.getLogger("alchemist.skill.model")


@dataclass(frozen=True, slots=True)
class ModelMessage:
    """대화 메시지 한 건 (role: system | user | assistant)"""

    role: str
    content: str

    def to_wire(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class ModelResponse:
    content: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class ModelProvider(Protocol):
    """언어 모델 제공자 인터페이스"""

    async def generate(
        self,
        prompt: str,
        history: Sequence[ModelMessage] = (),
        system_prompt: Optional[str] = None,
    ) -> ModelResponse: ...

    async def health_check(self) -> bool: ...

    async def close(self) -> None: ...


class OllamaProvider:
    """Ollama 로컬 모델 서버 클라이언트"""

    HEADERS: ClassVar[dict[str, str]] = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }

    def __init__(self, config: ModelConfig, max_connections: int = 10) -> None:
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._max_connections = max_connections
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def model(self) -> str:
        return self._config.model

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(
                total=self._config.timeout,
                connect=self._config.connect_timeout,
            )
            connector = aiohttp.TCPConnector(
                limit=self._max_connections,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                connector=connector,
                headers=self.HEADERS,
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def generate(
        self,
        prompt: str,
        history: Sequence[ModelMessage] = (),
        system_prompt: Optional[str] = None,
    ) -> ModelResponse:
        """채팅 완성 요청. HTTP/파싱 실패는 ModelProviderError."""
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend(m.to_wire() for m in history)
        messages.append({"role": "user", "content": prompt})

        body: dict[str, Any] = {
            "model": self._config.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": self._config.temperature,
                "num_predict": self._config.max_tokens,
            },
        }

        session = await self._get_session()
        try:
            async with session.post(f"{self._base_url}/api/chat", json=body) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise ModelProviderError(
                        f"Ollama 오류 HTTP {resp.status}: {text[:200]}"
                    )
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ModelProviderError(f"Ollama 요청 실패: {e}") from e
        except ValueError as e:
            raise ModelProviderError(f"Ollama 응답 파싱 실패: {e}") from e

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict) or not isinstance(message.get("content"), str):
            raise ModelProviderError("Ollama 응답에 message.content가 없습니다")

        return ModelResponse(
            content=message["content"],
            model=str(data.get("model", self._config.model)),
            prompt_tokens=int(data.get("prompt_eval_count") or 0),
            completion_tokens=int(data.get("eval_count") or 0),
        )

    async def health_check(self) -> bool:
        """모델 서버 도달 가능 여부. 예외를 던지지 않는다."""
        session = await self._get_session()
        try:
            async with session.get(f"{self._base_url}/api/tags") as resp:
                return resp.status == 200
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("Ollama 상태 확인 실패: %s", e)
            return False

    def info(self) -> dict[str, Any]:
        return {
            "provider": "ollama",
            "model": self._config.model,
            "base_url": self._base_url,
            "max_tokens": self._config.max_tokens,
        }


def create_provider(config: ModelConfig) -> OllamaProvider:
    """설정에 맞는 모델 제공자 생성. ollama 외에는 ConfigurationError."""
    provider = config.provider.lower()
    if provider == "ollama":
        return OllamaProvider(config)
    if provider in ("openai", "anthropic"):
        raise ConfigurationError(f"{provider} 제공자는 아직 지원하지 않습니다")
    raise ConfigurationError(f"알 수 없는 모델 제공자: {config.provider}")
