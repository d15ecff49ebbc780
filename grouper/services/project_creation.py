"""
Project creation orchestrator.

Creates a project (pending), its members and planned members, then runs the
generation pipeline. The project id is returned even when generation fails,
since the project itself exists and the user can retry planning.
"""

import logging
import uuid
from typing import Optional

from config import settings
from ..ai.exceptions import PlanErrorCode
from ..ai.planner import PlanInput
from ..database.exceptions import DatabaseError
from ..database.models import PlanStatusEnum
from ..database.repositories.projects import ProjectRepository, get_project_repository
from ..models.api_validation import CreateProjectRequest, CreateProjectResponse, PlanErrorBody
from .identity import CallerIdentity
from .join_codes import JoinCodeAllocator
from .plan_pipeline import PlanPipeline

logger = logging.getLogger(__name__)


def resolve_trace_id(body_trace_id: Optional[str] = None, request_id: Optional[str] = None) -> str:
    """Body trace id, else the X-Request-ID header, else a fresh uuid."""
    return body_trace_id or request_id or str(uuid.uuid4())


class ProjectCreationService:
    """Creates a project and its first plan."""

    def __init__(
        self,
        projects: Optional[ProjectRepository] = None,
        join_codes: Optional[JoinCodeAllocator] = None,
        pipeline: Optional[PlanPipeline] = None,
        allow_debug_skip: Optional[bool] = None,
    ):
        self.projects = projects or get_project_repository()
        self.join_codes = join_codes or JoinCodeAllocator(projects=self.projects)
        self.pipeline = pipeline or PlanPipeline(projects=self.projects)
        self.allow_debug_skip = (
            settings.allow_debug_skip_openai if allow_debug_skip is None else allow_debug_skip
        )

    async def create_project(
        self,
        request: CreateProjectRequest,
        caller: CallerIdentity,
        trace_id: str,
    ) -> CreateProjectResponse:
        """
        Create a project for the caller and generate its plan.

        Store failures before the project row exists propagate; everything
        after that ends in a ready or failed project.
        """
        logger.info(
            f"create-with-ai: trace={trace_id} bodySummary nameLen={len(request.name)} "
            f"descriptionLen={len(request.description or '')} "
            f"assignmentDetailsLen={len(request.assignment_details)} groupSize={request.group_size}"
        )

        join_code = await self.join_codes.allocate()
        logger.info(f"join code generated trace={trace_id} code={join_code}")

        project = await self.projects.create(
            name=request.name,
            description=request.description,
            timeframe=request.timeframe.value,
            assignment_details=request.assignment_details,
            group_size=request.group_size,
            join_code=join_code,
            plan_status=PlanStatusEnum.PENDING.value,
        )
        project_id = project.id
        logger.info(f"insert project ok trace={trace_id} project_id={project_id}")

        creator_name = request.member_names[0] if request.member_names else None
        try:
            await self.projects.add_member(project_id, caller.user_id, display_name=creator_name or None)
            if len(request.member_names) > 1:
                await self.projects.add_planned_members(project_id, request.member_names[1:])
        except DatabaseError as e:
            logger.error(f"insert members failed trace={trace_id} project_id={project_id}: {e}")
            return await self._fail_setup(project_id, str(e), trace_id)

        plan_input = PlanInput(
            title=request.name,
            description=request.description,
            timeframe=request.timeframe.value,
            assignment_details=request.assignment_details,
            group_size=request.group_size,
        )

        if request.debug_skip_openai:
            if self.allow_debug_skip:
                return await self._skip_generation(project_id, plan_input, caller, trace_id)
            logger.warning(f"debug_skip_openai requested but not allowed trace={trace_id}; ignoring")

        outcome = await self.pipeline.run(project_id, plan_input, user_id=caller.user_id, trace_id=trace_id)

        if outcome.ok:
            logger.info(f"return success trace={trace_id} project_id={project_id}")
            return CreateProjectResponse(
                project_id=project_id,
                plan_status=PlanStatusEnum.READY.value,
                trace_id=trace_id,
            )

        return CreateProjectResponse(
            project_id=project_id,
            plan_status=PlanStatusEnum.FAILED.value,
            error=PlanErrorBody(code=outcome.error_code, message=outcome.error_message),
            trace_id=trace_id,
        )

    async def _skip_generation(
        self,
        project_id: int,
        plan_input: PlanInput,
        caller: CallerIdentity,
        trace_id: str,
    ) -> CreateProjectResponse:
        """Diagnostic bypass: mark ready with no plan and close the audit row without output."""
        logger.warning(f"debug_skip_openai true trace={trace_id} returning early")
        audit_id = await self.pipeline.open_audit(project_id, plan_input, caller.user_id, trace_id)
        try:
            await self.projects.mark_ready_without_plan(project_id)
        except DatabaseError as e:
            await self.pipeline.audit.mark_failed(
                audit_id, PlanErrorCode.GENERATE_OR_PERSIST_FAILED.value, str(e), 0
            )
            return await self._fail_setup(project_id, str(e), trace_id)
        await self.pipeline.audit.mark_ready(audit_id, None, 0)
        return CreateProjectResponse(
            project_id=project_id,
            plan_status=PlanStatusEnum.READY.value,
            trace_id=trace_id,
        )

    async def _fail_setup(self, project_id: int, message: str, trace_id: str) -> CreateProjectResponse:
        """Mark a project failed when a store write around generation breaks, so retry can claim it."""
        code = PlanErrorCode.GENERATE_OR_PERSIST_FAILED.value
        try:
            await self.projects.mark_failed(project_id, code, message)
        except DatabaseError as e:
            logger.critical(
                f"Could not mark project {project_id} failed trace={trace_id}: {e}", exc_info=True
            )
        return CreateProjectResponse(
            project_id=project_id,
            plan_status=PlanStatusEnum.FAILED.value,
            error=PlanErrorBody(code=code, message=message),
            trace_id=trace_id,
        )
