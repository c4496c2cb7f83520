"""상태 스냅샷 모델 (요청 시 계산, 저장하지 않음)"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from alchemist.agent.state import BusStatus

STATUS_HEALTHY = "healthy"
STATUS_DEGRADED = "degraded"
STATUS_UNHEALTHY = "unhealthy"
STATUS_DRAINING = "draining"


@dataclass(frozen=True, slots=True)
class HealthSnapshot:
    status: str
    version: str
    uptime: float
    active_session_count: int
    bus_state: BusStatus
    model_provider_reachable: Optional[bool]
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def model_status(self) -> str:
        if self.model_provider_reachable is None:
            return "unknown"
        return "available" if self.model_provider_reachable else "unavailable"

    def to_wire(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "version": self.version,
            "uptime_seconds": int(self.uptime),
            "model_status": self.model_status,
            "active_dialogs": self.active_session_count,
            "metadata": {"bus_state": self.bus_state.label(), **self.metadata},
        }
