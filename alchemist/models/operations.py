"""알려진 연산 목록

버스 경계에서 문자열 type_tag를 닫힌 열거형으로 변환한다.
등록되지 않은 태그는 UnknownType으로 명시적으로 거부된다.
"""

from __future__ import annotations

from enum import Enum

from alchemist.models.errors import UnknownType


class MessageKind(Enum):
    """주제(subject) 패턴으로 구분되는 메시지 종류"""

    COMMAND = "command"
    QUERY = "query"
    DIALOG = "dialog"
    HEALTH = "health"

    @property
    def expects_reply(self) -> bool:
        return self is not MessageKind.COMMAND


class OperationType(Enum):
    """(와이어 태그, 메시지 종류)"""

    # 명령 (fire-and-forget)
    EXPLAIN_CONCEPT = ("explain_concept", MessageKind.COMMAND)
    VISUALIZE_ARCHITECTURE = ("visualize_architecture", MessageKind.COMMAND)
    GUIDE_WORKFLOW = ("guide_workflow", MessageKind.COMMAND)
    ADVANCE_WORKFLOW = ("advance_workflow", MessageKind.COMMAND)
    ANALYZE_PATTERN = ("analyze_pattern", MessageKind.COMMAND)
    END_DIALOG = ("end_dialog", MessageKind.COMMAND)

    # 쿼리 (request-reply)
    LIST_CONCEPTS = ("list_concepts", MessageKind.QUERY)
    FIND_SIMILAR_CONCEPTS = ("find_similar_concepts", MessageKind.QUERY)
    GET_DIALOG_HISTORY = ("get_dialog_history", MessageKind.QUERY)
    GET_WORKFLOW_STATUS = ("get_workflow_status", MessageKind.QUERY)
    GET_CAPABILITIES = ("get_capabilities", MessageKind.QUERY)
    START_DIALOG = ("start_dialog", MessageKind.QUERY)

    # 대화
    DIALOG_MESSAGE = ("dialog_message", MessageKind.DIALOG)

    def __init__(self, tag: str, kind: MessageKind) -> None:
        self.tag = tag
        self.kind = kind

    @classmethod
    def from_wire(cls, kind: MessageKind, tag: str) -> OperationType:
        """와이어 태그 → 연산. 종류가 다르거나 모르는 태그면 UnknownType."""
        op = _BY_WIRE.get((kind, tag))
        if op is None:
            raise UnknownType(f"알 수 없는 {kind.value} 유형: {tag!r}")
        return op

    @classmethod
    def of_kind(cls, kind: MessageKind) -> tuple[OperationType, ...]:
        return tuple(op for op in cls if op.kind is kind)


_BY_WIRE: dict[tuple[MessageKind, str], OperationType] = {
    (op.kind, op.tag): op for op in OperationType
}
