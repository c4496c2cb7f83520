"""개념 설명 스킬

explain_concept, analyze_pattern (명령)
list_concepts, find_similar_concepts (쿼리)
"""

from __future__ import annotations

import logging
from typing import Any

from alchemist.models.operations import OperationType
from alchemist.skills import knowledge
from alchemist.skills.base import BaseSkill, HandlerContext, Registration
from alchemist.skills.model_provider import ModelProvider
from alchemist.skills.validation import FieldSpec, PayloadSchema

logger = logging.getLogger("alchemist.skill.concepts")

_CONCEPT_SCHEMA = PayloadSchema((FieldSpec("concept", max_length=200),))
_PATTERN_SCHEMA = PayloadSchema((
    FieldSpec("pattern_type", required=False, max_length=100),
    FieldSpec("code", required=False, max_length=20_000),
))


class ConceptSkill(BaseSkill):
    """CIM 개념 설명/분석"""

    def __init__(self, provider: ModelProvider) -> None:
        self._provider = provider

    @property
    def name(self) -> str:
        return "explain_concepts"

    def registrations(self) -> dict[OperationType, Registration]:
        return {
            OperationType.EXPLAIN_CONCEPT: Registration(self.explain, _CONCEPT_SCHEMA),
            OperationType.ANALYZE_PATTERN: Registration(self.analyze_pattern, _PATTERN_SCHEMA),
            OperationType.LIST_CONCEPTS: Registration(self.list_concepts),
            OperationType.FIND_SIMILAR_CONCEPTS: Registration(self.find_similar, _CONCEPT_SCHEMA),
        }

    async def explain(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        concept = knowledge.canonical_concept(payload["concept"])
        prompt = (
            f"Explain the CIM concept '{concept}' in detail, including its purpose, "
            "how it fits into the overall architecture, and provide examples."
        )
        response = await self._provider.generate(
            prompt, system_prompt=knowledge.SYSTEM_PROMPT,
        )
        logger.debug("개념 설명 생성: %s (%d 토큰)", concept, response.total_tokens)
        return {
            "concept": concept,
            "explanation": response.content,
            "related_concepts": knowledge.related_concepts(concept),
            "examples": knowledge.concept_examples(concept),
        }

    async def analyze_pattern(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        pattern_type = payload.get("pattern_type") or "general"
        code = payload.get("code") or ""

        analysis = await self._provider.generate(
            f"Analyze this {pattern_type} pattern in the context of CIM architecture:"
            f"\n\n{code}\n\n"
            "Identify strengths, potential issues, and suggest improvements.",
            system_prompt=knowledge.SYSTEM_PROMPT,
        )
        advice = await self._provider.generate(
            f"Based on this {pattern_type} pattern:\n\n{code}\n\n"
            "Provide 3-5 specific recommendations for improvement "
            "in the context of CIM architecture.",
            system_prompt=knowledge.SYSTEM_PROMPT,
        )
        return {
            "pattern_type": pattern_type,
            "analysis": analysis.content,
            "recommendations": parse_recommendations(advice.content),
        }

    async def list_concepts(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        return {
            "concepts": list(knowledge.CIM_CONCEPTS),
            "total": len(knowledge.CIM_CONCEPTS),
        }

    async def find_similar(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        concept = knowledge.canonical_concept(payload["concept"])
        return {
            "concept": concept,
            "similar": knowledge.similar_concepts(concept),
        }


def parse_recommendations(text: str) -> list[str]:
    """모델 응답에서 '- ' / '* ' 목록 항목 추출. 없으면 기본 추천."""
    items = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith(("- ", "* ")):
            item = stripped[2:].strip()
            if item:
                items.append(item)
    return items or list(knowledge.DEFAULT_RECOMMENDATIONS)
