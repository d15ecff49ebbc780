"""
Tests for the project creation orchestrator (services/project_creation.py).

Runs against a real SQLite store with the generator in stub mode or backed
by a fake.
"""

import pytest
from unittest.mock import AsyncMock

from grouper.ai.exceptions import PlanError, PlanErrorCode
from grouper.database.exceptions import DatabaseOperationError
from grouper.database.repositories import AuditRepository, ProjectRepository
from grouper.models.api_validation import CreateProjectRequest
from grouper.services.join_codes import JoinCodeAllocator
from grouper.services.plan_persistence import PlanReconciler
from grouper.services.plan_pipeline import PlanPipeline
from grouper.services.project_creation import ProjectCreationService, resolve_trace_id


def make_service(database, generator, reconciler=None, allow_debug_skip=False):
    projects = ProjectRepository(database)
    pipeline = PlanPipeline(
        generator=generator,
        reconciler=reconciler or PlanReconciler(database),
        projects=projects,
        audit=AuditRepository(database),
    )
    return ProjectCreationService(
        projects=projects,
        join_codes=JoinCodeAllocator(projects=projects),
        pipeline=pipeline,
        allow_debug_skip=allow_debug_skip,
    )


def make_request(**overrides):
    fields = dict(
        name="Marketing plan",
        description="Launch plan for a campus cafe",
        timeframe="oneWeek",
        assignment_details="Prepare a marketing plan with budget, channels and a pitch deck.",
        group_size=3,
        member_names=["Dana", "Eli", ""],
    )
    fields.update(overrides)
    return CreateProjectRequest(**fields)


class TestCreateProjectWithPlan:

    @pytest.mark.asyncio
    async def test_stub_end_to_end(self, database, stub_generator, caller, projects, bundles, tasks, audit):
        service = make_service(database, stub_generator)

        response = await service.create_project(make_request(), caller, "trace-e2e")

        assert response.plan_status == "ready"
        assert response.error is None
        assert response.trace_id == "trace-e2e"

        project = await projects.get_by_id(response.project_id)
        assert project.plan_status == "ready"
        assert len(project.join_code) == 6

        rows = await bundles.get_by_project(project.id)
        assert [b.label for b in rows] == ["Person 1", "Person 2", "Person 3"]
        for bundle in rows:
            assert len(await tasks.get_by_bundle(bundle.id)) == 5

        payload_bundles = project.plan_payload["bundles"]
        efforts = [sum(t["effort_points"] for t in b["tasks"]) for b in payload_bundles]
        assert all(total > 0 for total in efforts)

        entries = await audit.get_for_project(project.id)
        assert len(entries) == 1
        assert entries[0].status == "ready"
        assert entries[0].model == "stub"
        assert entries[0].output_plan == project.plan_payload
        assert entries[0].created_by_user_id == caller.user_id

    @pytest.mark.asyncio
    async def test_members_and_planned_members(self, database, stub_generator, caller, projects):
        service = make_service(database, stub_generator)

        response = await service.create_project(make_request(), caller, "trace-1")

        creator = await projects.get_member(response.project_id, caller.user_id)
        assert creator.display_name == "Dana"
        planned = await projects.get_planned_members(response.project_id)
        assert [p.display_name for p in planned] == ["Eli", "TBD"]

    @pytest.mark.asyncio
    async def test_no_member_names(self, database, stub_generator, caller, projects):
        service = make_service(database, stub_generator)

        response = await service.create_project(make_request(member_names=[]), caller, "trace-1")

        creator = await projects.get_member(response.project_id, caller.user_id)
        assert creator.display_name is None
        assert await projects.get_planned_members(response.project_id) == []

    @pytest.mark.asyncio
    async def test_assignment_too_long_fails_but_keeps_project(self, database, stub_generator, caller, projects, audit):
        service = make_service(database, stub_generator)

        response = await service.create_project(
            make_request(assignment_details="x" * 20000), caller, "trace-long"
        )

        assert response.plan_status == "failed"
        assert response.error.code == "ASSIGNMENT_TOO_LONG"

        project = await projects.get_by_id(response.project_id)
        assert project is not None
        assert project.plan_status == "failed"
        assert project.plan_error["code"] == "ASSIGNMENT_TOO_LONG"

        entry = (await audit.get_for_project(project.id))[0]
        assert entry.status == "failed"
        assert entry.error_code == "ASSIGNMENT_TOO_LONG"
        assert entry.input_assignment_length == 20000

        # Failed projects can be claimed again by a retry
        assert await projects.claim_plan_generation(project.id)

    @pytest.mark.asyncio
    async def test_generator_failure(self, database, caller, projects):
        generator = AsyncMock()
        generator.model_name = "gpt-test"
        generator.generate_plan = AsyncMock(side_effect=PlanError(PlanErrorCode.AI_TIMEOUT, "timed out"))
        service = make_service(database, generator)

        response = await service.create_project(make_request(), caller, "trace-1")

        assert response.plan_status == "failed"
        assert response.error.code == "AI_TIMEOUT"
        assert response.error.message == "timed out"
        project = await projects.get_by_id(response.project_id)
        assert project.plan_error == {"code": "AI_TIMEOUT", "message": "timed out"}

    @pytest.mark.asyncio
    async def test_persistence_failure(self, database, stub_generator, caller, projects, audit):
        reconciler = AsyncMock()
        reconciler.persist_plan = AsyncMock(side_effect=DatabaseOperationError("deadlock detected"))
        service = make_service(database, stub_generator, reconciler=reconciler)

        response = await service.create_project(make_request(), caller, "trace-1")

        assert response.plan_status == "failed"
        assert response.error.code == "GENERATE_OR_PERSIST_FAILED"
        assert "deadlock detected" in response.error.message
        project = await projects.get_by_id(response.project_id)
        assert project.plan_status == "failed"
        entry = (await audit.get_for_project(project.id))[0]
        assert entry.status == "failed"
        assert entry.error_code == "GENERATE_OR_PERSIST_FAILED"

    @pytest.mark.asyncio
    async def test_planned_member_failure_leaves_retryable_project(self, database, stub_generator, caller, projects):
        service = make_service(database, stub_generator)
        service.projects.add_planned_members = AsyncMock(side_effect=DatabaseOperationError("disk full"))

        response = await service.create_project(make_request(), caller, "trace-1")

        assert response.plan_status == "failed"
        assert response.error.code == "GENERATE_OR_PERSIST_FAILED"
        assert "disk full" in response.error.message
        project = await projects.get_by_id(response.project_id)
        assert project.plan_status == "failed"
        assert project.plan_error["code"] == "GENERATE_OR_PERSIST_FAILED"
        assert await projects.get_member(response.project_id, caller.user_id) is not None
        assert await projects.claim_plan_generation(response.project_id)

    @pytest.mark.asyncio
    async def test_creator_member_failure_skips_generation(self, database, caller, projects):
        generator = AsyncMock()
        generator.model_name = "gpt-test"
        service = make_service(database, generator)
        service.projects.add_member = AsyncMock(side_effect=DatabaseOperationError("connection reset"))

        response = await service.create_project(make_request(), caller, "trace-1")

        assert response.plan_status == "failed"
        assert response.error.code == "GENERATE_OR_PERSIST_FAILED"
        generator.generate_plan.assert_not_called()
        project = await projects.get_by_id(response.project_id)
        assert project.plan_status == "failed"


class TestDebugBypass:

    @pytest.mark.asyncio
    async def test_bypass_when_allowed(self, database, caller, projects, bundles, audit):
        generator = AsyncMock()
        generator.model_name = "gpt-test"
        service = make_service(database, generator, allow_debug_skip=True)

        response = await service.create_project(make_request(debug_skip_openai=True), caller, "trace-1")

        assert response.plan_status == "ready"
        generator.generate_plan.assert_not_called()
        project = await projects.get_by_id(response.project_id)
        assert project.plan_status == "ready"
        assert project.plan_payload is None
        assert await bundles.get_by_project(project.id) == []
        entry = (await audit.get_for_project(project.id))[0]
        assert entry.status == "ready"
        assert entry.output_plan is None

    @pytest.mark.asyncio
    async def test_bypass_ignored_without_opt_in(self, database, stub_generator, caller, bundles):
        service = make_service(database, stub_generator, allow_debug_skip=False)

        response = await service.create_project(make_request(debug_skip_openai=True), caller, "trace-1")

        assert response.plan_status == "ready"
        assert len(await bundles.get_by_project(response.project_id)) == 3


class TestResolveTraceId:

    def test_body_wins(self):
        assert resolve_trace_id("body-id", "header-id") == "body-id"

    def test_header_fallback(self):
        assert resolve_trace_id(None, "header-id") == "header-id"

    def test_generated(self):
        first = resolve_trace_id(None, None)

        assert len(first) == 36
        assert first != resolve_trace_id(None, None)
