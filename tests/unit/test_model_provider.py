"""모델 제공자 테스트 (HTTP 세션 모의)"""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import aiohttp
import pytest

from alchemist.models.config import ModelConfig
from alchemist.models.errors import ConfigurationError, ModelProviderError
from alchemist.skills.model_provider import (
    ModelMessage,
    OllamaProvider,
    create_provider,
)


class FakeResponse:
    def __init__(self, status: int = 200, payload: Any = None, text: str = "") -> None:
        self.status = status
        self._payload = payload
        self._text = text

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def text(self) -> str:
        return self._text

    async def json(self, content_type: Any = None) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[tuple[str, str, Any]] = []
        self.closed = False

    def _call(self, method: str, url: str, json: Any = None) -> FakeResponse:
        self.requests.append((method, url, json))
        if self.error is not None:
            raise self.error
        return self.response

    def post(self, url: str, json: Any = None) -> FakeResponse:
        return self._call("POST", url, json)

    def get(self, url: str) -> FakeResponse:
        return self._call("GET", url)


def make_provider(session: FakeSession) -> OllamaProvider:
    provider = OllamaProvider(ModelConfig(base_url="http://ollama:11434/", model="vicuna"))
    provider._get_session = AsyncMock(return_value=session)
    return provider


CHAT_OK = {
    "model": "vicuna",
    "message": {"role": "assistant", "content": "Event Sourcing은..."},
    "prompt_eval_count": 12,
    "eval_count": 30,
}


class TestGenerate:
    @pytest.mark.asyncio
    async def test_builds_chat_request(self) -> None:
        session = FakeSession(FakeResponse(payload=CHAT_OK))
        provider = make_provider(session)

        result = await provider.generate(
            "설명해줘",
            history=[ModelMessage("user", "안녕"), ModelMessage("assistant", "반가워요")],
            system_prompt="system",
        )

        method, url, body = session.requests[0]
        assert (method, url) == ("POST", "http://ollama:11434/api/chat")
        assert body["model"] == "vicuna"
        assert body["stream"] is False
        assert [m["role"] for m in body["messages"]] == ["system", "user", "assistant", "user"]
        assert body["messages"][-1]["content"] == "설명해줘"
        assert body["options"]["num_predict"] == 2048

        assert result.content == "Event Sourcing은..."
        assert result.total_tokens == 42

    @pytest.mark.asyncio
    async def test_no_system_prompt(self) -> None:
        session = FakeSession(FakeResponse(payload=CHAT_OK))
        await make_provider(session).generate("hi")
        assert session.requests[0][2]["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        provider = make_provider(FakeSession(FakeResponse(status=500, text="model not loaded")))
        with pytest.raises(ModelProviderError, match="500") as exc_info:
            await provider.generate("hi")
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_client_error(self) -> None:
        provider = make_provider(FakeSession(error=aiohttp.ClientConnectionError("refused")))
        with pytest.raises(ModelProviderError):
            await provider.generate("hi")

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        provider = make_provider(FakeSession(error=asyncio.TimeoutError()))
        with pytest.raises(ModelProviderError):
            await provider.generate("hi")

    @pytest.mark.asyncio
    async def test_bad_json(self) -> None:
        provider = make_provider(FakeSession(FakeResponse(payload=ValueError("bad json"))))
        with pytest.raises(ModelProviderError, match="파싱"):
            await provider.generate("hi")

    @pytest.mark.asyncio
    async def test_missing_message(self) -> None:
        provider = make_provider(FakeSession(FakeResponse(payload={"model": "vicuna"})))
        with pytest.raises(ModelProviderError, match="message.content"):
            await provider.generate("hi")


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_reachable(self) -> None:
        session = FakeSession(FakeResponse(payload={"models": []}))
        assert await make_provider(session).health_check() is True
        assert session.requests[0][:2] == ("GET", "http://ollama:11434/api/tags")

    @pytest.mark.asyncio
    async def test_non_200(self) -> None:
        assert await make_provider(FakeSession(FakeResponse(status=503))).health_check() is False

    @pytest.mark.asyncio
    async def test_connection_error_returns_false(self) -> None:
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
        assert await make_provider(session).health_check() is False


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_session_is_reused_and_closed(self) -> None:
        provider = OllamaProvider(ModelConfig())

        first = await provider._get_session()
        second = await provider._get_session()
        assert first is second

        await provider.close()
        assert first.closed

    @pytest.mark.asyncio
    async def test_close_without_session(self) -> None:
        await OllamaProvider(ModelConfig()).close()


class TestCreateProvider:
    def test_ollama(self) -> None:
        provider = create_provider(ModelConfig(provider="Ollama", model="llama3"))
        assert isinstance(provider, OllamaProvider)
        assert provider.info()["model"] == "llama3"

    @pytest.mark.parametrize("name", ["openai", "anthropic"])
    def test_unsupported(self, name: str) -> None:
        with pytest.raises(ConfigurationError, match="지원하지"):
            create_provider(ModelConfig(provider=name))

    def test_unknown(self) -> None:
        with pytest.raises(ConfigurationError):
            create_provider(ModelConfig(provider="bard"))

    def test_info_strips_trailing_slash(self) -> None:
        provider = OllamaProvider(ModelConfig(base_url="http://host:1/"))
        assert provider.info()["base_url"] == "http://host:1"
