"""역량 스킬 기본 인터페이스

역량 스킬은 연산별 핸들러를 등록한다. 핸들러는
검증된 페이로드와 HandlerContext를 받아 결과 dict를 반환하거나
AgentError 하위 예외를 던진다. 버스 I/O는 하지 않는다.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from alchemist.models.envelope import Envelope
from alchemist.models.operations import OperationType
from alchemist.skills.session_manager import SessionHandle
from alchemist.skills.validation import EMPTY_SCHEMA, PayloadSchema


@dataclass(frozen=True, slots=True)
class HandlerContext:
    """핸들러 호출 맥락. sessions는 대화 관련 연산에만 주어진다."""

    envelope: Envelope
    agent_id: str
    sessions: Optional[SessionHandle] = None


Handler = Callable[[dict[str, Any], HandlerContext], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class Registration:
    """연산 1개에 대한 핸들러 등록 정보"""

    handler: Handler
    schema: PayloadSchema = EMPTY_SCHEMA
    uses_sessions: bool = False


class BaseSkill(ABC):
    """역량 스킬 기본 인터페이스

    규칙:
    - 단일 책임: 관련 연산 묶음만 처리
    - 버스 비의존: 결과 반환 또는 예외로만 응답
    - 실패 격리: 핸들러 오류는 디스패처가 오류 응답으로 변환
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """스킬 고유 이름"""

    @abstractmethod
    def registrations(self) -> dict[OperationType, Registration]:
        """처리하는 연산 → 등록 정보"""

    async def setup(self) -> None:
        """초기화 (선택적 오버라이드)"""

    async def teardown(self) -> None:
        """정리 (선택적 오버라이드)"""
