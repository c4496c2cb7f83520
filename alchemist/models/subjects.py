"""버스 주제(subject) 규칙

  <prefix>.commands.<command_type>   명령 (fire-and-forget)
  <prefix>.queries.<query_type>      쿼리 (request-reply)
  <prefix>.health                    상태 조회 (request-reply)
  <prefix>.events.<event>            명령 결과 이벤트
  <prefix>.inbox.<gateway_id>        request-reply 응답 수신함
  <dialog_prefix>.<session_id>       대화 메시지

패턴은 Redis glob 문법(PSUBSCRIBE)을 따른다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from alchemist.models.operations import MessageKind


@dataclass(frozen=True, slots=True)
class SubjectLayout:
    prefix: str
    dialog_prefix: str

    # ── 패턴 ──

    @property
    def commands_pattern(self) -> str:
        return f"{self.prefix}.commands.*"

    @property
    def queries_pattern(self) -> str:
        return f"{self.prefix}.queries.*"

    @property
    def health_subject(self) -> str:
        return f"{self.prefix}.health"

    @property
    def dialog_pattern(self) -> str:
        return f"{self.dialog_prefix}.*"

    @property
    def events_pattern(self) -> str:
        return f"{self.prefix}.events.*"

    def inbound_patterns(self) -> tuple[str, ...]:
        """에이전트가 구독하는 패턴 전체"""
        return (
            self.commands_pattern,
            self.queries_pattern,
            self.health_subject,
            self.dialog_pattern,
        )

    # ── 주제 생성 ──

    def command(self, command_type: str) -> str:
        return f"{self.prefix}.commands.{command_type}"

    def query(self, query_type: str) -> str:
        return f"{self.prefix}.queries.{query_type}"

    def dialog(self, session_id: str) -> str:
        return f"{self.dialog_prefix}.{session_id}"

    def event(self, name: str) -> str:
        return f"{self.prefix}.events.{name}"

    def inbox(self, gateway_id: str) -> str:
        return f"{self.prefix}.inbox.{gateway_id}"

    # ── 주제 해석 ──

    def classify(self, subject: str) -> Optional[tuple[MessageKind, str]]:
        """주제 → (메시지 종류, 마지막 토큰). 해당 없으면 None.

        마지막 토큰은 명령/쿼리 유형 또는 세션 id이다.
        """
        if subject == self.health_subject:
            return MessageKind.HEALTH, ""
        for kind, head in (
            (MessageKind.COMMAND, f"{self.prefix}.commands."),
            (MessageKind.QUERY, f"{self.prefix}.queries."),
            (MessageKind.DIALOG, f"{self.dialog_prefix}."),
        ):
            if subject.startswith(head):
                tail = subject[len(head):]
                if tail:
                    return kind, tail
        return None
