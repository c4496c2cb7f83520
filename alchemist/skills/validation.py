"""페이로드 스키마 검증 스킬

핸들러 호출 전에 페이로드를 검증한다. 실패 시 InvalidPayload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from alchemist.models.errors import InvalidPayload

_TYPE_NAMES: dict[type, str] = {
    str: "문자열",
    int: "정수",
    float: "숫자",
    bool: "불리언",
    dict: "객체",
    list: "배열",
}


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """필드 규칙"""

    name: str
    value_type: type = str
    required: bool = True
    choices: Optional[frozenset[str]] = None
    max_length: Optional[int] = None


@dataclass(frozen=True, slots=True)
class PayloadSchema:
    """연산별 페이로드 스키마. 정의되지 않은 필드는 허용한다."""

    fields: tuple[FieldSpec, ...] = ()

    def validate(self, payload: Any) -> dict[str, Any]:
        """검증 통과 시 페이로드를 그대로 반환"""
        if not isinstance(payload, dict):
            raise InvalidPayload("페이로드는 JSON 객체여야 합니다")

        for rule in self.fields:
            if rule.name not in payload or payload[rule.name] is None:
                if rule.required:
                    raise InvalidPayload(f"필수 필드 누락: {rule.name}")
                continue
            self.validate_field(rule, payload[rule.name])
        return payload

    @staticmethod
    def validate_field(rule: FieldSpec, value: Any) -> None:
        """타입, 빈 문자열, 허용값, 길이 검증"""
        # bool은 int의 하위 타입이므로 별도 처리
        if isinstance(value, bool) and rule.value_type is not bool:
            raise InvalidPayload(
                f"{rule.name}: {_TYPE_NAMES.get(rule.value_type, rule.value_type.__name__)} 필요"
            )
        expected: tuple[type, ...] = (
            (int, float) if rule.value_type is float else (rule.value_type,)
        )
        if not isinstance(value, expected):
            raise InvalidPayload(
                f"{rule.name}: {_TYPE_NAMES.get(rule.value_type, rule.value_type.__name__)} 필요"
            )
        if rule.value_type is str:
            if rule.required and not value.strip():
                raise InvalidPayload(f"{rule.name}: 빈 문자열은 허용되지 않습니다")
            if rule.choices is not None and value not in rule.choices:
                raise InvalidPayload(
                    f"{rule.name}: 허용값 {sorted(rule.choices)} 중 하나여야 합니다"
                )
        if rule.max_length is not None and len(value) > rule.max_length:
            raise InvalidPayload(
                f"{rule.name}: 최대 길이 {rule.max_length} 초과"
            )


EMPTY_SCHEMA = PayloadSchema()
