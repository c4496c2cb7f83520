"""엔벨로프 와이어 코덱 스킬

버스의 JSON 바이트와 구조화된 엔벨로프 사이를 변환한다.
형식 오류는 InvalidPayload로 보고한다.
"""

from __future__ import annotations

import json
from typing import Any

from alchemist.models.envelope import (
    Envelope,
    InboundMessage,
    parse_timestamp,
    utc_now,
)
from alchemist.models.errors import InvalidPayload
from alchemist.models.operations import MessageKind, OperationType

# 명령/쿼리별 유형 필드와 페이로드 필드
_TYPE_FIELDS: dict[MessageKind, tuple[str, str]] = {
    MessageKind.COMMAND: ("command_type", "payload"),
    MessageKind.QUERY: ("query_type", "parameters"),
}

# 대화 메시지에서 페이로드로 옮길 필드
_DIALOG_FIELDS = ("content", "sender", "metadata")


def parse_body(data: bytes | str) -> dict[str, Any]:
    """바이트 → JSON 객체. 객체가 아니면 InvalidPayload."""
    try:
        body = json.loads(data)
    except (TypeError, ValueError) as e:
        raise InvalidPayload(f"JSON 파싱 실패: {e}") from e
    if not isinstance(body, dict):
        raise InvalidPayload("메시지 본문은 JSON 객체여야 합니다")
    return body


def encode(message: Any) -> bytes:
    """to_wire()를 가진 모델 또는 dict → JSON 바이트"""
    wire = message.to_wire() if hasattr(message, "to_wire") else message
    return json.dumps(wire, ensure_ascii=False, default=str).encode("utf-8")


def decode_envelope(
    message: InboundMessage,
    kind: MessageKind,
    token: str,
) -> Envelope:
    """수신 메시지 → Envelope

    token은 주제의 마지막 토큰(명령/쿼리 유형 또는 세션 id)이다.
    """
    body = message.body
    if body is None:
        raise InvalidPayload("메시지 본문을 해석할 수 없습니다")

    envelope_id = message.envelope_id
    if envelope_id is None:
        raise InvalidPayload("엔벨로프에 id가 없습니다")

    timestamp = utc_now()
    raw_ts = body.get("timestamp")
    if raw_ts is not None:
        if not isinstance(raw_ts, str):
            raise InvalidPayload("timestamp는 ISO-8601 문자열이어야 합니다")
        try:
            timestamp = parse_timestamp(raw_ts)
        except ValueError as e:
            raise InvalidPayload(f"timestamp 형식 오류: {raw_ts!r}") from e

    origin = body.get("origin", "unknown")
    if not isinstance(origin, str):
        raise InvalidPayload("origin은 문자열이어야 합니다")

    if kind is MessageKind.DIALOG:
        type_tag = OperationType.DIALOG_MESSAGE.tag
        payload = {k: body[k] for k in _DIALOG_FIELDS if k in body}
        nested = body.get("payload")
        if isinstance(nested, dict):
            payload = {**nested, **payload}
        payload["dialog_id"] = token
    else:
        type_field, payload_field = _TYPE_FIELDS[kind]
        type_tag = body.get(type_field, token)
        if not isinstance(type_tag, str) or not type_tag:
            raise InvalidPayload(f"{type_field}가 없습니다")
        if type_tag != token:
            raise InvalidPayload(
                f"{type_field}({type_tag!r})가 주제({token!r})와 다릅니다"
            )
        payload = body.get(payload_field, {})
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise InvalidPayload(f"{payload_field}는 JSON 객체여야 합니다")

    return Envelope(
        id=envelope_id,
        type_tag=type_tag,
        kind=kind,
        payload=payload,
        timestamp=timestamp,
        origin=origin,
        subject=message.subject,
        reply_to=message.reply_to,
    )
