"""
Plan retry orchestrator.

Re-runs generation for an existing project. Concurrent retries are serialized
by ProjectRepository.claim_plan_generation: only the caller whose conditional
update moved the project to pending generates; everyone else is told pending.
"""

import logging
from typing import Optional

from ..ai.planner import PlanInput
from ..database.models import PlanStatusEnum
from ..database.repositories.projects import ProjectRepository, get_project_repository
from ..models.api_validation import RetryPlanRequest, RetryPlanResponse
from .exceptions import ForbiddenError, ProjectNotFoundError
from .identity import CallerIdentity
from .plan_pipeline import PlanPipeline

logger = logging.getLogger(__name__)


class PlanRetryService:
    """Retries plan generation for a project member."""

    def __init__(
        self,
        projects: Optional[ProjectRepository] = None,
        pipeline: Optional[PlanPipeline] = None,
    ):
        self.projects = projects or get_project_repository()
        self.pipeline = pipeline or PlanPipeline(projects=self.projects)

    async def retry_plan(
        self,
        request: RetryPlanRequest,
        caller: CallerIdentity,
        trace_id: Optional[str] = None,
    ) -> RetryPlanResponse:
        """
        Retry generation unless an attempt is already in flight.

        Raises:
            ProjectNotFoundError: if the project does not exist
            ForbiddenError: if the caller is not a project member
        """
        project_id = request.project_id

        project = await self.projects.get_by_id(project_id)
        if project is None:
            raise ProjectNotFoundError(f"Project {project_id} not found")

        member = await self.projects.get_member(project_id, caller.user_id)
        if member is None:
            raise ForbiddenError("Forbidden")

        if project.plan_status == PlanStatusEnum.PENDING.value:
            logger.info(f"retry-plan: already pending trace={trace_id} project_id={project_id}")
            return RetryPlanResponse(status=PlanStatusEnum.PENDING.value)

        if project.plan_status == PlanStatusEnum.READY.value and not request.force:
            return RetryPlanResponse(status=PlanStatusEnum.READY.value, plan_payload=project.plan_payload)

        if not await self.projects.claim_plan_generation(project_id):
            logger.info(f"retry-plan: lost claim trace={trace_id} project_id={project_id}")
            return RetryPlanResponse(status=PlanStatusEnum.PENDING.value)

        outcome = await self.pipeline.run(
            project_id,
            PlanInput.from_project(project),
            user_id=caller.user_id,
            trace_id=trace_id,
        )

        if outcome.ok:
            return RetryPlanResponse(status=PlanStatusEnum.READY.value, plan_payload=outcome.plan.to_payload())

        return RetryPlanResponse(
            status=PlanStatusEnum.FAILED.value,
            error_code=outcome.error_code,
            error_message=outcome.error_message,
        )
