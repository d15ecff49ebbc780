"""
Generation pipeline shared by project creation and plan retry.

audit (pending) -> generate -> reconcile -> audit (ready)

Any failure is converted into durable state: the project is marked failed with
{code, message} and the audit row is closed as failed. Nothing propagates to
the caller; the outcome says what happened.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..ai.exceptions import PlanError, PlanErrorCode
from ..ai.planner import PlanGenerator, PlanInput, get_plan_generator
from ..ai.prompts import PROMPT_VERSION
from ..database.models import PlanStatusEnum
from ..database.repositories.audit import AuditRepository, get_audit_repository
from ..database.repositories.projects import ProjectRepository, get_project_repository
from ..models.plan import Plan
from .plan_persistence import PersistResult, PlanReconciler, get_plan_reconciler

logger = logging.getLogger(__name__)


@dataclass
class PipelineOutcome:
    status: str
    plan: Optional[Plan] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    persist_result: Optional[PersistResult] = None

    @property
    def ok(self) -> bool:
        return self.status == PlanStatusEnum.READY.value


class PlanPipeline:
    """Runs one generation attempt for a project that is already pending."""

    def __init__(
        self,
        generator: Optional[PlanGenerator] = None,
        reconciler: Optional[PlanReconciler] = None,
        projects: Optional[ProjectRepository] = None,
        audit: Optional[AuditRepository] = None,
    ):
        self.generator = generator or get_plan_generator()
        self.reconciler = reconciler or get_plan_reconciler()
        self.projects = projects or get_project_repository()
        self.audit = audit or get_audit_repository()

    async def open_audit(
        self,
        project_id: int,
        plan_input: PlanInput,
        user_id: Optional[str],
        trace_id: Optional[str],
    ) -> Optional[int]:
        """Record the generation request. Returns the audit row id, or None if it could not be written."""
        entry = await self.audit.start(
            project_id=project_id,
            created_by_user_id=user_id,
            trace_id=trace_id,
            title=plan_input.title,
            description=plan_input.description,
            timeframe=plan_input.timeframe,
            assignment_length=len(plan_input.assignment_details or ""),
            group_size=plan_input.group_size,
            model=self.generator.model_name,
            prompt_version=PROMPT_VERSION,
        )
        return entry.id if entry is not None else None

    async def run(
        self,
        project_id: int,
        plan_input: PlanInput,
        user_id: Optional[str] = None,
        trace_id: Optional[str] = None,
    ) -> PipelineOutcome:
        audit_id = await self.open_audit(project_id, plan_input, user_id, trace_id)
        started = time.monotonic()

        logger.info(f"generatePlan: start trace={trace_id} project_id={project_id}")
        try:
            plan = await self.generator.generate_plan(plan_input, trace_id=trace_id)
        except PlanError as e:
            return await self._fail(project_id, audit_id, e.code.value, e.message, started, trace_id)
        except Exception as e:
            logger.error(f"generatePlan: unexpected failure trace={trace_id}: {e}", exc_info=True)
            return await self._fail(
                project_id, audit_id, PlanErrorCode.GENERATE_OR_PERSIST_FAILED.value, str(e), started, trace_id
            )

        logger.info(f"generatePlan: parsed ok trace={trace_id} bundles={len(plan.bundles)}")
        latency_ms = self._elapsed_ms(started)

        logger.info(f"persistPlan start trace={trace_id}")
        try:
            persist_result = await self.reconciler.persist_plan(project_id, plan)
        except Exception as e:
            logger.error(f"persistPlan error trace={trace_id}: {e}")
            return await self._fail(
                project_id, audit_id, PlanErrorCode.GENERATE_OR_PERSIST_FAILED.value, str(e), started, trace_id
            )

        logger.info(
            f"persistPlan ok trace={trace_id} bundles_inserted={persist_result.bundles_inserted} "
            f"tasks_inserted={persist_result.tasks_inserted}"
        )
        await self.audit.mark_ready(audit_id, plan.to_payload(), latency_ms)

        return PipelineOutcome(
            status=PlanStatusEnum.READY.value,
            plan=plan,
            persist_result=persist_result,
        )

    async def _fail(
        self,
        project_id: int,
        audit_id: Optional[int],
        code: str,
        message: str,
        started: float,
        trace_id: Optional[str],
    ) -> PipelineOutcome:
        logger.warning(f"plan failed trace={trace_id} project_id={project_id} code={code}")
        try:
            await self.projects.mark_failed(project_id, code, message)
        except Exception as e:
            # The project stays pending; only a stale-pending sweep can release it
            logger.critical(
                f"Could not mark project {project_id} failed trace={trace_id}: {e}", exc_info=True
            )
        await self.audit.mark_failed(audit_id, code, message, self._elapsed_ms(started))

        return PipelineOutcome(
            status=PlanStatusEnum.FAILED.value,
            error_code=code,
            error_message=message,
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
