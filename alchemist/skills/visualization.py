"""아키텍처 시각화 스킬

visualize_architecture 명령: 범위별 노드/엣지 그래프와 모델이 생성한 설명.
"""

from __future__ import annotations

from typing import Any

from alchemist.models.config import GraphConfig
from alchemist.models.operations import OperationType
from alchemist.skills import knowledge
from alchemist.skills.base import BaseSkill, HandlerContext, Registration
from alchemist.skills.model_provider import ModelProvider
from alchemist.skills.validation import FieldSpec, PayloadSchema

DEFAULT_SCOPE = "overview"

_SCHEMA = PayloadSchema((FieldSpec("scope", required=False, max_length=100),))


class VisualizationSkill(BaseSkill):
    """CIM 아키텍처 그래프 생성"""

    def __init__(self, provider: ModelProvider, config: GraphConfig | None = None) -> None:
        self._provider = provider
        self._config = config or GraphConfig()

    @property
    def name(self) -> str:
        return "visualize_architecture"

    def registrations(self) -> dict[OperationType, Registration]:
        return {
            OperationType.VISUALIZE_ARCHITECTURE: Registration(self.visualize, _SCHEMA),
        }

    async def visualize(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        scope = payload.get("scope") or DEFAULT_SCOPE
        description = await self._provider.generate(
            f"Describe the {scope} visualization of CIM architecture, "
            "explaining what it shows and how to interpret it.",
            system_prompt=knowledge.SYSTEM_PROMPT,
        )
        return {
            "scope": scope,
            "visualization": self.build_graph(scope),
            "description": description.content,
        }

    def build_graph(self, scope: str) -> dict[str, Any]:
        """범위 → {nodes, edges, layout}. 모르는 범위는 error 필드만 반환."""
        graph = knowledge.ARCHITECTURE_GRAPHS.get(scope)
        if graph is None:
            return {"error": f"Custom visualization for '{scope}' not yet implemented"}

        nodes = graph["nodes"][: self._config.max_nodes]
        kept = {n["id"] for n in nodes}
        edges = [
            e for e in graph["edges"]
            if e["source"] in kept and e["target"] in kept
        ]
        result: dict[str, Any] = {
            "nodes": [dict(n) for n in nodes],
            "edges": [dict(e) for e in edges],
        }
        if self._config.auto_layout:
            result["layout"] = self._config.layout_algorithm
        return result
