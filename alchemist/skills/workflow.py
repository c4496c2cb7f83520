"""워크플로 안내 스킬

guide_workflow, advance_workflow (명령), get_workflow_status (쿼리).

진행 중 워크플로는 max_concurrent개로 제한되며,
timeout 동안 진척이 없으면 만료(expired) 처리된다.
완료·만료된 실행은 timeout 동안만 조회 가능하다.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from time import monotonic
from typing import Any, Callable

from alchemist.models.config import WorkflowConfig
from alchemist.models.errors import HandlerFailure
from alchemist.models.operations import OperationType
from alchemist.skills.base import BaseSkill, HandlerContext, Registration
from alchemist.skills.knowledge import WORKFLOW_TEMPLATES, WorkflowTemplate
from alchemist.skills.validation import FieldSpec, PayloadSchema

logger = logging.getLogger("alchemist.skill.workflow")

STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_EXPIRED = "expired"

_GUIDE_SCHEMA = PayloadSchema((
    FieldSpec("workflow_type", choices=frozenset(WORKFLOW_TEMPLATES)),
))
_ID_SCHEMA = PayloadSchema((FieldSpec("workflow_id", max_length=64),))


@dataclass(slots=True)
class WorkflowRun:
    """진행 중 워크플로 한 건"""

    workflow_id: str
    template: WorkflowTemplate
    step_index: int
    status: str
    last_touch: float

    @property
    def current_step(self) -> str | None:
        if self.status == STATUS_COMPLETED:
            return None
        return self.template.steps[self.step_index].key

    @property
    def progress(self) -> float:
        """현재 단계 위치 기준 진행률 (%)"""
        if self.status == STATUS_COMPLETED:
            return 100.0
        return round((self.step_index + 1) / len(self.template.steps) * 100, 1)

    def to_wire(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "workflow_type": self.template.workflow_type,
            "status": self.status,
            "current_step": self.current_step,
            "progress": self.progress,
        }


class WorkflowSkill(BaseSkill):
    """단계별 워크플로 안내"""

    def __init__(
        self,
        config: WorkflowConfig | None = None,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._config = config or WorkflowConfig()
        self._clock = clock
        self._runs: dict[str, WorkflowRun] = {}

    @property
    def name(self) -> str:
        return "guide_workflows"

    def registrations(self) -> dict[OperationType, Registration]:
        return {
            OperationType.GUIDE_WORKFLOW: Registration(self.start, _GUIDE_SCHEMA),
            OperationType.ADVANCE_WORKFLOW: Registration(self.advance, _ID_SCHEMA),
            OperationType.GET_WORKFLOW_STATUS: Registration(self.status, _ID_SCHEMA),
        }

    @property
    def active_count(self) -> int:
        self._expire()
        return sum(1 for r in self._runs.values() if r.status == STATUS_ACTIVE)

    async def start(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        template = WORKFLOW_TEMPLATES[payload["workflow_type"]]
        if self.active_count >= self._config.max_concurrent:
            raise HandlerFailure(
                f"동시 진행 워크플로 한도 초과 ({self._config.max_concurrent})",
                retryable=True,
            )
        run = WorkflowRun(
            workflow_id=str(uuid.uuid4()),
            template=template,
            step_index=0,
            status=STATUS_ACTIVE,
            last_touch=self._clock(),
        )
        self._runs[run.workflow_id] = run
        logger.info("워크플로 시작: %s (%s)", run.workflow_id, template.workflow_type)
        return {
            "workflow_id": run.workflow_id,
            "workflow_type": template.workflow_type,
            "name": template.name,
            "status": "started",
            "first_step": template.steps[0].to_wire(),
        }

    async def advance(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        run = self._lookup(payload["workflow_id"])
        if run.status != STATUS_ACTIVE:
            raise HandlerFailure(
                f"워크플로가 진행 중이 아닙니다: {run.workflow_id} ({run.status})"
            )
        if run.step_index + 1 >= len(run.template.steps):
            run.status = STATUS_COMPLETED
            logger.info("워크플로 완료: %s", run.workflow_id)
        else:
            run.step_index += 1
        run.last_touch = self._clock()
        result = run.to_wire()
        if run.status == STATUS_ACTIVE:
            result["step"] = run.template.steps[run.step_index].to_wire()
        return result

    async def status(self, payload: dict[str, Any], ctx: HandlerContext) -> dict[str, Any]:
        return self._lookup(payload["workflow_id"]).to_wire()

    def _lookup(self, workflow_id: str) -> WorkflowRun:
        self._expire()
        run = self._runs.get(workflow_id)
        if run is None:
            raise HandlerFailure(f"워크플로를 찾을 수 없습니다: {workflow_id}")
        return run

    def _expire(self) -> None:
        """유휴 실행은 만료 처리하고, 끝난 실행은 timeout 동안만 보관한다.

        보관되는 종료 실행은 최대 max_concurrent개이며 오래된 것부터 제거한다.
        """
        now = self._clock()
        timeout = self._config.timeout
        for run in self._runs.values():
            if run.status == STATUS_ACTIVE and now - run.last_touch > timeout:
                run.status = STATUS_EXPIRED
                run.last_touch = now
                logger.info("워크플로 만료: %s", run.workflow_id)

        finished = sorted(
            (r for r in self._runs.values() if r.status != STATUS_ACTIVE),
            key=lambda r: r.last_touch,
        )
        excess = len(finished) - self._config.max_concurrent
        for i, run in enumerate(finished):
            if i < excess or now - run.last_touch > timeout:
                del self._runs[run.workflow_id]
