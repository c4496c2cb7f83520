"""CIM 지식 데이터

개념 목록, 연관/유사 개념, 코드 예시, 아키텍처 그래프,
워크플로 템플릿과 시스템 프롬프트를 관리한다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

SYSTEM_PROMPT = (
    "You are the Alchemist, an AI assistant specialized in helping users understand "
    "and work with the Composable Information Machine (CIM) architecture.\n\n"
    "Your expertise includes:\n"
    "- Event-driven architecture with event sourcing and CQRS\n"
    "- Domain-Driven Design principles and patterns\n"
    "- Entity Component Systems (ECS)\n"
    "- Graph-based workflows and visual programming\n"
    "- Conceptual spaces for semantic understanding\n"
    "- Messaging and distributed systems\n\n"
    "You should:\n"
    "- Provide clear, accurate explanations of CIM concepts\n"
    "- Use examples from the actual CIM codebase when relevant\n"
    "- Guide users through implementation patterns\n"
    "- Suggest best practices and improvements\n\n"
    "Always be helpful, precise, and educational in your responses."
)

CIM_CONCEPTS: tuple[str, ...] = (
    "Event Sourcing",
    "CQRS",
    "Domain-Driven Design",
    "Entity Component System",
    "Conceptual Spaces",
    "Graph Workflows",
    "NATS Messaging",
    "CID Chains",
    "Aggregate",
    "Value Object",
    "Domain Event",
    "Command Handler",
    "Query Handler",
    "Projection",
    "Bounded Context",
)

# 개념 → 연관 개념
RELATED_CONCEPTS: dict[str, tuple[str, ...]] = {
    "Event Sourcing": ("CQRS", "Event Store", "Domain Events"),
    "Domain-Driven Design": ("Bounded Context", "Aggregate", "Ubiquitous Language"),
}

# 개념 → 유사 개념 (개념 공간 근접)
SIMILAR_CONCEPTS: dict[str, tuple[str, ...]] = {
    "Event Sourcing": ("Event Store", "Event Stream", "CQRS"),
    "Domain-Driven Design": ("Bounded Context", "Aggregate", "Value Object"),
    "Graph Workflows": ("Workflow Engine", "Process Automation", "Visual Programming"),
}

# 개념 → 코드베이스 예시
CONCEPT_EXAMPLES: dict[str, tuple[str, ...]] = {
    "Event Sourcing": (
        "GraphEvent::NodeAdded in cim-domain-graph",
        "PersonEvent::ContactAdded in cim-domain-person",
    ),
}

# 별칭 → 정식 명칭
CONCEPT_ALIASES: dict[str, str] = {
    "ddd": "Domain-Driven Design",
    "es": "Event Sourcing",
    "ecs": "Entity Component System",
    "cqrs": "CQRS",
}


def canonical_concept(name: str) -> str:
    """입력 개념명을 정식 명칭으로 변환. 모르는 이름은 공백만 정리해 반환."""
    cleaned = " ".join(name.split())
    alias = CONCEPT_ALIASES.get(cleaned.lower())
    if alias:
        return alias
    for concept in CIM_CONCEPTS:
        if concept.lower() == cleaned.lower():
            return concept
    return cleaned


def related_concepts(name: str) -> list[str]:
    return list(RELATED_CONCEPTS.get(canonical_concept(name), ()))


def similar_concepts(name: str) -> list[str]:
    return list(SIMILAR_CONCEPTS.get(canonical_concept(name), ()))


def concept_examples(name: str) -> list[str]:
    return list(CONCEPT_EXAMPLES.get(canonical_concept(name), ()))


# ── 아키텍처 그래프 ──

ARCHITECTURE_GRAPHS: dict[str, dict[str, list[dict[str, str]]]] = {
    "overview": {
        "nodes": [
            {"id": "domains", "label": "CIM Domains", "type": "category"},
            {"id": "infrastructure", "label": "Infrastructure", "type": "category"},
            {"id": "bridge", "label": "Bridge Layer", "type": "category"},
        ],
        "edges": [
            {"source": "domains", "target": "infrastructure", "label": "uses"},
            {"source": "bridge", "target": "domains", "label": "connects"},
        ],
    },
    "domains": {
        "nodes": [
            {"id": "agent", "label": "Agent Domain", "type": "domain"},
            {"id": "dialog", "label": "Dialog Domain", "type": "domain"},
            {"id": "graph", "label": "Graph Domain", "type": "domain"},
            {"id": "workflow", "label": "Workflow Domain", "type": "domain"},
        ],
        "edges": [
            {"source": "agent", "target": "dialog", "label": "manages"},
            {"source": "workflow", "target": "graph", "label": "visualizes"},
        ],
    },
    "events": {
        "nodes": [
            {"id": "command", "label": "Command", "type": "input"},
            {"id": "handler", "label": "Command Handler", "type": "processor"},
            {"id": "aggregate", "label": "Aggregate", "type": "domain"},
            {"id": "event", "label": "Domain Event", "type": "output"},
        ],
        "edges": [
            {"source": "command", "target": "handler", "label": "processes"},
            {"source": "handler", "target": "aggregate", "label": "updates"},
            {"source": "aggregate", "target": "event", "label": "emits"},
        ],
    },
}


# ── 워크플로 템플릿 ──

@dataclass(frozen=True, slots=True)
class WorkflowStep:
    key: str
    title: str
    description: str = ""
    actions: tuple[str, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"step": self.key, "title": self.title}
        if self.description:
            wire["description"] = self.description
        if self.actions:
            wire["actions"] = list(self.actions)
        return wire


@dataclass(frozen=True, slots=True)
class WorkflowTemplate:
    workflow_type: str
    name: str
    description: str
    steps: tuple[WorkflowStep, ...]


WORKFLOW_TEMPLATES: dict[str, WorkflowTemplate] = {
    "create_agent": WorkflowTemplate(
        workflow_type="create_agent",
        name="Create CIM Agent",
        description="Workflow for creating a new CIM agent",
        steps=(
            WorkflowStep(
                "setup", "Setup Project Structure",
                "Create a new cim-agent-* directory with the standard structure",
                (
                    "Create the package manifest with dependencies",
                    "Set up the source directory structure",
                    "Create configuration templates",
                    "Initialize git repository",
                ),
            ),
            WorkflowStep("domains", "Select domains to compose"),
            WorkflowStep("model", "Configure AI model"),
            WorkflowStep("messaging", "Setup messaging integration"),
            WorkflowStep("test", "Write tests"),
            WorkflowStep("deploy", "Deploy agent"),
        ),
    ),
    "implement_domain": WorkflowTemplate(
        workflow_type="implement_domain",
        name="Implement CIM Domain",
        description="Workflow for implementing a new CIM domain",
        steps=(
            WorkflowStep(
                "design", "Design Domain Model",
                "Define the domain boundaries and core concepts",
                (
                    "Identify aggregates and entities",
                    "Define value objects",
                    "Map relationships",
                    "Document ubiquitous language",
                ),
            ),
            WorkflowStep("events", "Define domain events"),
            WorkflowStep("commands", "Define commands"),
            WorkflowStep("aggregate", "Implement aggregate"),
            WorkflowStep("handlers", "Implement handlers"),
            WorkflowStep("tests", "Write tests"),
        ),
    ),
    "add_event": WorkflowTemplate(
        workflow_type="add_event",
        name="Add Domain Event",
        description="Workflow for adding a new domain event",
        steps=(
            WorkflowStep(
                "define", "Define Event Structure",
                "Create the event type and its properties",
                (
                    "Choose event name (past tense)",
                    "Define event payload",
                    "Add serialization support",
                    "Document event purpose",
                ),
            ),
            WorkflowStep("handler", "Create event handler"),
            WorkflowStep("test", "Write event tests"),
            WorkflowStep("integrate", "Integrate with aggregate"),
        ),
    ),
}

# 패턴 분석 추천을 모델 응답에서 찾지 못했을 때의 기본 추천
DEFAULT_RECOMMENDATIONS: tuple[str, ...] = (
    "Consider using event sourcing for state changes",
    "Ensure proper separation between commands and queries",
    "Add appropriate error handling",
)
