"""핸들러 레지스트리

시작 시 한 번 만들어 디스패처에 넘기는 불변 매핑.
OperationType → Registration.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, Mapping

from alchemist.models.config import IdentityConfig
from alchemist.models.operations import MessageKind, OperationType
from alchemist.skills.base import BaseSkill, HandlerContext, Registration

HandlerRegistry = Mapping[OperationType, Registration]


def build_registry(
    skills: Iterable[BaseSkill],
    identity: IdentityConfig | None = None,
) -> HandlerRegistry:
    """스킬 등록 정보를 합쳐 불변 레지스트리 생성. 연산 중복 시 ValueError.

    get_capabilities는 등록된 스킬로부터 자동으로 응답한다.
    """
    skills = list(skills)
    identity = identity or IdentityConfig()
    table: dict[OperationType, Registration] = {}
    owners: dict[OperationType, str] = {}
    for skill in skills:
        for op, registration in skill.registrations().items():
            if op in table:
                raise ValueError(
                    f"{op.tag} 연산이 {owners[op]}와 {skill.name}에 중복 등록되었습니다"
                )
            table[op] = registration
            owners[op] = skill.name

    if OperationType.GET_CAPABILITIES not in table:
        capabilities = CapabilitiesHandler(identity, [s.name for s in skills])
        table[OperationType.GET_CAPABILITIES] = Registration(capabilities)
        capabilities.bind(table)

    return MappingProxyType(table)


class CapabilitiesHandler:
    """에이전트 식별 정보와 지원 연산 목록 응답"""

    def __init__(self, identity: IdentityConfig, skill_names: list[str]) -> None:
        self._identity = identity
        self._skill_names = skill_names
        self._operations: Mapping[OperationType, Registration] = {}

    def bind(self, table: Mapping[OperationType, Registration]) -> None:
        self._operations = table

    async def __call__(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        return {
            "agent": {
                "id": ctx.agent_id,
                "name": self._identity.name,
                "description": self._identity.description,
                "version": self._identity.version,
                "organization": self._identity.organization,
            },
            "capabilities": {name: True for name in self._skill_names},
            "operations": {
                kind.value: sorted(op.tag for op in self._operations if op.kind is kind)
                for kind in (MessageKind.COMMAND, MessageKind.QUERY, MessageKind.DIALOG)
            },
        }
