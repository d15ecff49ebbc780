"""
Tests for the plan retry orchestrator (services/plan_retry.py).
"""

import asyncio

import pytest

from grouper.ai.exceptions import PlanError, PlanErrorCode
from grouper.ai.planner import build_stub_plan
from grouper.models.api_validation import RetryPlanRequest
from grouper.models.plan import validate_plan
from grouper.services.exceptions import ForbiddenError, ProjectNotFoundError
from grouper.services.identity import CallerIdentity
from grouper.services.plan_pipeline import PlanPipeline
from grouper.services.plan_retry import PlanRetryService


class CountingGenerator:
    """Stub-plan generator that counts calls and can be slowed down or made to fail."""

    model_name = "fake-model"

    def __init__(self, delay=0.0, error=None):
        self.delay = delay
        self.error = error
        self.calls = 0

    async def generate_plan(self, plan_input, trace_id=None):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        candidate = build_stub_plan(plan_input.timeframe, plan_input.group_size)
        return validate_plan(candidate, plan_input.group_size).plan


@pytest.fixture
def make_service(projects, reconciler, audit):
    def _make(generator):
        pipeline = PlanPipeline(generator=generator, reconciler=reconciler, projects=projects, audit=audit)
        return PlanRetryService(projects=projects, pipeline=pipeline)
    return _make


@pytest.fixture
def member_project(make_project, projects, caller):
    async def _make(status="failed", **overrides):
        project = await make_project(**overrides)
        await projects.add_member(project.id, caller.user_id)
        if status == "failed":
            await projects.mark_failed(project.id, "AI_TIMEOUT", "timed out")
        return project
    return _make


@pytest.mark.asyncio
async def test_unknown_project(make_service, caller):
    service = make_service(CountingGenerator())

    with pytest.raises(ProjectNotFoundError):
        await service.retry_plan(RetryPlanRequest(project_id=404), caller)


@pytest.mark.asyncio
async def test_non_member_forbidden(make_service, member_project):
    project = await member_project()
    service = make_service(CountingGenerator())

    with pytest.raises(ForbiddenError):
        await service.retry_plan(RetryPlanRequest(project_id=project.id), CallerIdentity("stranger"))


@pytest.mark.asyncio
async def test_pending_project_reports_pending(make_service, member_project, caller):
    project = await member_project(status="pending")
    generator = CountingGenerator()
    service = make_service(generator)

    response = await service.retry_plan(RetryPlanRequest(project_id=project.id, force=True), caller)

    assert response.status == "pending"
    assert generator.calls == 0


@pytest.mark.asyncio
async def test_failed_project_regenerates(make_service, member_project, caller, projects, bundles, audit):
    project = await member_project(group_size=2)
    generator = CountingGenerator()
    service = make_service(generator)

    response = await service.retry_plan(RetryPlanRequest(project_id=project.id), caller, trace_id="trace-r")

    assert response.status == "ready"
    assert [b["label"] for b in response.plan_payload["bundles"]] == ["Person 1", "Person 2"]
    assert generator.calls == 1

    stored = await projects.get_by_id(project.id)
    assert stored.plan_status == "ready"
    assert stored.plan_error is None
    assert len(await bundles.get_by_project(project.id)) == 2

    entry = (await audit.get_for_project(project.id))[0]
    assert entry.trace_id == "trace-r"
    assert entry.model == "fake-model"
    assert entry.status == "ready"


@pytest.mark.asyncio
async def test_ready_without_force_returns_stored_plan(make_service, member_project, caller):
    project = await member_project(group_size=2)
    generator = CountingGenerator()
    service = make_service(generator)
    first = await service.retry_plan(RetryPlanRequest(project_id=project.id), caller)

    second = await service.retry_plan(RetryPlanRequest(project_id=project.id), caller)

    assert second.status == "ready"
    assert second.plan_payload == first.plan_payload
    assert generator.calls == 1


@pytest.mark.asyncio
async def test_ready_with_force_regenerates(make_service, member_project, caller, audit):
    project = await member_project(group_size=2)
    generator = CountingGenerator()
    service = make_service(generator)
    await service.retry_plan(RetryPlanRequest(project_id=project.id), caller)

    response = await service.retry_plan(RetryPlanRequest(project_id=project.id, force=True), caller)

    assert response.status == "ready"
    assert generator.calls == 2
    assert len(await audit.get_for_project(project.id)) == 2


@pytest.mark.asyncio
async def test_retry_failure_is_recorded(make_service, member_project, caller, projects):
    project = await member_project()
    error = PlanError(PlanErrorCode.AI_OUTPUT_INVALID, "Unable to parse AI output as JSON")
    service = make_service(CountingGenerator(error=error))

    response = await service.retry_plan(RetryPlanRequest(project_id=project.id), caller)

    assert response.status == "failed"
    assert response.error_code == "AI_OUTPUT_INVALID"
    assert response.error_message == "Unable to parse AI output as JSON"
    stored = await projects.get_by_id(project.id)
    assert stored.plan_status == "failed"
    assert stored.plan_error["code"] == "AI_OUTPUT_INVALID"


@pytest.mark.asyncio
async def test_concurrent_retries_generate_once(make_service, member_project, caller, projects):
    project = await member_project(group_size=2)
    generator = CountingGenerator(delay=0.3)
    service = make_service(generator)
    request = RetryPlanRequest(project_id=project.id)

    results = await asyncio.gather(
        service.retry_plan(request, caller),
        service.retry_plan(request, caller),
    )

    assert generator.calls == 1
    assert sorted(r.status for r in results) == ["pending", "ready"]
    stored = await projects.get_by_id(project.id)
    assert stored.plan_status == "ready"
