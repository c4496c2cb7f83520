"""버스 메시지 모델: 수신 메시지, 엔벨로프, 응답, 이벤트

모든 모델은 frozen=True + slots=True로 불변성을 보장한다.
timestamp는 정보용이며 순서 결정에 사용하지 않는다.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from alchemist.models.errors import AgentError
from alchemist.models.operations import MessageKind


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def format_timestamp(ts: datetime) -> str:
    """ISO-8601 UTC ('Z' 접미사)"""
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(raw: str) -> datetime:
    """ISO-8601 문자열 → UTC datetime. 형식 오류 시 ValueError."""
    ts = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """게이트웨이가 구독자에게 전달하는 원시 수신 메시지

    body는 JSON 파싱 결과이며, 파싱 실패 시 None이다.
    """

    subject: str
    pattern: str
    data: bytes
    body: Optional[dict[str, Any]] = None

    @property
    def envelope_id(self) -> Optional[str]:
        if self.body is None:
            return None
        value = self.body.get("id")
        return value if isinstance(value, str) and value else None

    @property
    def reply_to(self) -> Optional[str]:
        if self.body is None:
            return None
        value = self.body.get("reply_to")
        return value if isinstance(value, str) and value else None


@dataclass(frozen=True, slots=True)
class Envelope:
    """디코딩된 명령/쿼리/대화 메시지"""

    id: str
    type_tag: str
    kind: MessageKind
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)
    origin: str = "unknown"
    subject: str = ""
    reply_to: Optional[str] = None

    @classmethod
    def command(cls, command_type: str, payload: dict[str, Any] | None = None,
                origin: str = "client", envelope_id: str | None = None) -> Envelope:
        return cls(
            id=envelope_id or new_id(),
            type_tag=command_type,
            kind=MessageKind.COMMAND,
            payload=payload or {},
            origin=origin,
        )

    @classmethod
    def query(cls, query_type: str, parameters: dict[str, Any] | None = None,
              origin: str = "client", envelope_id: str | None = None) -> Envelope:
        return cls(
            id=envelope_id or new_id(),
            type_tag=query_type,
            kind=MessageKind.QUERY,
            payload=parameters or {},
            origin=origin,
        )

    def with_reply_to(self, inbox: str) -> Envelope:
        return Envelope(
            id=self.id,
            type_tag=self.type_tag,
            kind=self.kind,
            payload=self.payload,
            timestamp=self.timestamp,
            origin=self.origin,
            subject=self.subject,
            reply_to=inbox,
        )

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "id": self.id,
            "timestamp": format_timestamp(self.timestamp),
            "origin": self.origin,
        }
        if self.kind is MessageKind.COMMAND:
            wire["command_type"] = self.type_tag
            wire["payload"] = self.payload
        elif self.kind is MessageKind.DIALOG:
            wire.update(self.payload)
        else:
            wire["query_type"] = self.type_tag
            wire["parameters"] = self.payload
        if self.reply_to:
            wire["reply_to"] = self.reply_to
        return wire


@dataclass(frozen=True, slots=True)
class Response:
    """요청 id를 그대로 돌려주는 응답/오류 엔벨로프"""

    id: str
    success: bool
    result: Any = None
    error: Optional[dict[str, Any]] = None
    timestamp: datetime = field(default_factory=utc_now)
    agent_id: str = ""

    @classmethod
    def ok(cls, request_id: str, result: Any, agent_id: str = "") -> Response:
        return cls(id=request_id, success=True, result=result, agent_id=agent_id)

    @classmethod
    def failure(cls, request_id: str, error: AgentError, agent_id: str = "") -> Response:
        return cls(
            id=request_id,
            success=False,
            error=error.descriptor(),
            agent_id=agent_id,
        )

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.get("kind") if self.error else None

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "id": self.id,
            "success": self.success,
            "timestamp": format_timestamp(self.timestamp),
            "agent_id": self.agent_id,
        }
        if self.success:
            wire["result"] = self.result
        else:
            wire["error"] = self.error
        return wire

    @classmethod
    def from_wire(cls, body: dict[str, Any]) -> Response:
        """수신 응답 디코딩. id가 없으면 ValueError."""
        response_id = body.get("id")
        if not isinstance(response_id, str) or not response_id:
            raise ValueError("응답에 id가 없습니다")
        raw_ts = body.get("timestamp")
        try:
            ts = parse_timestamp(raw_ts) if isinstance(raw_ts, str) else utc_now()
        except ValueError:
            ts = utc_now()
        return cls(
            id=response_id,
            success=bool(body.get("success")),
            result=body.get("result"),
            error=body.get("error"),
            timestamp=ts,
            agent_id=str(body.get("agent_id", "")),
        )


@dataclass(frozen=True, slots=True)
class EventEnvelope:
    """명령 처리 결과로 발행되는 이벤트"""

    event_type: str
    payload: Any
    correlation_id: str
    agent_id: str
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utc_now)

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": format_timestamp(self.timestamp),
            "agent_id": self.agent_id,
            "correlation_id": self.correlation_id,
        }
