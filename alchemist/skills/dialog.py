"""대화 스킬

start_dialog (쿼리), end_dialog (명령), get_dialog_history (쿼리),
dialog_message (대화 주제).

세션 상태는 SessionHandle을 통해서만 접근한다.
"""

from __future__ import annotations

import logging
from typing import Any

from alchemist.models.errors import ConfigurationError
from alchemist.models.operations import OperationType
from alchemist.models.session import HistoryEntry
from alchemist.skills import knowledge
from alchemist.skills.base import BaseSkill, HandlerContext, Registration
from alchemist.skills.model_provider import ModelMessage, ModelProvider
from alchemist.skills.session_manager import SessionHandle
from alchemist.skills.validation import FieldSpec, PayloadSchema

logger = logging.getLogger("alchemist.skill.dialog")

ASSISTANT = "assistant"

_START_SCHEMA = PayloadSchema((
    FieldSpec("user_id", required=False, max_length=200),
    FieldSpec("context", dict, required=False),
    FieldSpec("metadata", dict, required=False),
))
_DIALOG_ID_SCHEMA = PayloadSchema((FieldSpec("dialog_id", max_length=64),))
_MESSAGE_SCHEMA = PayloadSchema((
    FieldSpec("dialog_id", max_length=64),
    FieldSpec("content", max_length=20_000),
    FieldSpec("sender", required=False, max_length=200),
    FieldSpec("metadata", dict, required=False),
))


class DialogSkill(BaseSkill):
    """다중 턴 대화"""

    def __init__(self, provider: ModelProvider, agent_name: str = "Alchemist") -> None:
        self._provider = provider
        self._agent_name = agent_name

    @property
    def name(self) -> str:
        return "dialog"

    def registrations(self) -> dict[OperationType, Registration]:
        return {
            OperationType.START_DIALOG: Registration(self.start, _START_SCHEMA, uses_sessions=True),
            OperationType.END_DIALOG: Registration(self.end, _DIALOG_ID_SCHEMA, uses_sessions=True),
            OperationType.GET_DIALOG_HISTORY: Registration(
                self.history, _DIALOG_ID_SCHEMA, uses_sessions=True,
            ),
            OperationType.DIALOG_MESSAGE: Registration(
                self.message, _MESSAGE_SCHEMA, uses_sessions=True,
            ),
        }

    async def start(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        sessions = _sessions(ctx)
        dialog_id = sessions.create({
            "user_id": payload.get("user_id") or "anonymous",
            "context": payload.get("context") or {},
            "metadata": payload.get("metadata") or {},
        })
        return {
            "dialog_id": dialog_id,
            "status": "active",
            "agent": {"id": ctx.agent_id, "name": self._agent_name},
        }

    async def end(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        _sessions(ctx).end(payload["dialog_id"])
        return {"dialog_id": payload["dialog_id"], "status": "ended"}

    async def history(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        entries = _sessions(ctx).history(payload["dialog_id"])
        return {
            "dialog_id": payload["dialog_id"],
            "turn_count": len(entries),
            "history": [e.to_wire() for e in entries],
        }

    async def message(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        """사용자 메시지 기록 → 최근 맥락으로 모델 호출 → 응답 기록"""
        sessions = _sessions(ctx)
        dialog_id = payload["dialog_id"]
        content = payload["content"]
        sender = payload.get("sender") or "user"

        sessions.append(dialog_id, sender, content)
        context = sessions.context(dialog_id)
        # 마지막 항목은 방금 추가한 사용자 메시지 (프롬프트로 별도 전달)
        history = [_to_model_message(e) for e in context[:-1]]

        response = await self._provider.generate(
            content, history=history, system_prompt=knowledge.SYSTEM_PROMPT,
        )
        sessions.append(dialog_id, ASSISTANT, response.content)
        logger.debug("대화 응답: %s (%d 토큰)", dialog_id, response.total_tokens)
        return {
            "dialog_id": dialog_id,
            "response": response.content,
            "turn_count": len(sessions.history(dialog_id)),
        }


def _sessions(ctx: HandlerContext) -> SessionHandle:
    if ctx.sessions is None:
        raise ConfigurationError("대화 연산에 세션 핸들이 주어지지 않았습니다")
    return ctx.sessions


def _to_model_message(entry: HistoryEntry) -> ModelMessage:
    role = entry.sender if entry.sender in (ASSISTANT, "system") else "user"
    return ModelMessage(role=role, content=entry.content)
