"""에이전트 설정 모델

기본값은 운영 예시 설정(config.yaml)과 동일하다.
시간 단위는 모두 초(float).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from alchemist import __version__


@dataclass
class IdentityConfig:
    """에이전트 식별 정보"""

    agent_id: str = field(default_factory=lambda: f"alchemist-{uuid.uuid4().hex[:8]}")
    name: str = "Alchemist"
    description: str = "CIM Architecture Assistant"
    version: str = __version__
    organization: str = "CIM"


@dataclass
class ModelConfig:
    """언어 모델 HTTP 서비스 설정"""

    provider: str = "ollama"
    base_url: str = "http://localhost:11434"
    model: str = "vicuna"
    timeout: float = 30.0
    connect_timeout: float = 5.0
    temperature: float = 0.7
    max_tokens: int = 2048


@dataclass
class RetryConfig:
    """버스 재연결 백오프: initial_delay * multiplier^n, max_delay 상한"""

    max_attempts: int = 5
    initial_delay: float = 0.1
    max_delay: float = 30.0
    multiplier: float = 2.0


@dataclass
class BusConfig:
    """메시지 버스 설정"""

    servers: list[str] = field(
        default_factory=lambda: ["redis://localhost:6379/0"]
    )
    subject_prefix: str = "cim.agent.alchemist"
    dialog_prefix: str = "cim.dialog.alchemist"
    retry: RetryConfig = field(default_factory=RetryConfig)

    # 중복 제거
    dedup_window: float = 120.0
    dedup_max_entries: int = 10_000

    # 흐름 제어
    publish_timeout: float = 5.0
    drain_grace: float = 5.0
    subscription_buffer: int = 1_000


@dataclass
class DialogConfig:
    """대화 세션 설정"""

    max_history: int = 100
    context_window: int = 10
    session_timeout: float = 3600.0
    sweep_interval: float = 60.0


@dataclass
class GraphConfig:
    """아키텍처 시각화 설정"""

    max_nodes: int = 1000
    auto_layout: bool = True
    layout_algorithm: str = "force-directed"


@dataclass
class WorkflowConfig:
    """워크플로 안내 설정"""

    max_concurrent: int = 10
    timeout: float = 300.0


@dataclass
class ServiceConfig:
    """서비스 런타임 설정"""

    handler_timeout: float = 30.0
    health_check_interval: float = 30.0
    shutdown_timeout: float = 10.0

    # 로깅
    log_level: str = "INFO"
    log_format: str = "color"
    log_file: str = ""


@dataclass
class AgentConfig:
    """에이전트 전체 설정"""

    identity: IdentityConfig = field(default_factory=IdentityConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    bus: BusConfig = field(default_factory=BusConfig)
    dialog: DialogConfig = field(default_factory=DialogConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)
