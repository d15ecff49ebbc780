"""
Unit tests for BundleRepository claim handling.
"""

import pytest

from grouper.ai.planner import build_stub_plan
from grouper.database.exceptions import EntityNotFoundError
from grouper.models.plan import validate_plan


@pytest.fixture
def planned_project(make_project, reconciler):
    async def _make(group_size=2):
        project = await make_project(group_size=group_size)
        plan = validate_plan(build_stub_plan("twoDay", group_size), group_size).plan
        await reconciler.persist_plan(project.id, plan)
        return project
    return _make


@pytest.mark.asyncio
async def test_claim_assigns_unowned_tasks(planned_project, projects, bundles, tasks):
    project = await planned_project()
    member = await projects.add_member(project.id, "user-1")
    bundle = (await bundles.get_by_project(project.id))[0]

    claimed, assigned = await bundles.claim_bundle(project.id, bundle.id, member.id)

    assert claimed.claimed_by_member_id == member.id
    assert assigned == 2
    assert all(t.owner_member_id == member.id for t in await tasks.get_by_bundle(bundle.id))


@pytest.mark.asyncio
async def test_claim_keeps_already_owned_tasks(planned_project, projects, bundles, tasks):
    project = await planned_project()
    owner = await projects.add_member(project.id, "user-owner")
    claimer = await projects.add_member(project.id, "user-claimer")
    bundle = (await bundles.get_by_project(project.id))[0]
    owned = await tasks.create_manual(project.id, "Already mine", bundle_id=bundle.id, owner_member_id=owner.id)

    _, assigned = await bundles.claim_bundle(project.id, bundle.id, claimer.id)

    assert assigned == 2
    by_id = {t.id: t for t in await tasks.get_by_bundle(bundle.id)}
    assert by_id[owned.id].owner_member_id == owner.id


@pytest.mark.asyncio
async def test_claim_is_sticky(planned_project, projects, bundles):
    project = await planned_project()
    first = await projects.add_member(project.id, "user-1")
    second = await projects.add_member(project.id, "user-2")
    bundle = (await bundles.get_by_project(project.id))[0]

    await bundles.claim_bundle(project.id, bundle.id, first.id)
    claimed, assigned = await bundles.claim_bundle(project.id, bundle.id, second.id)

    assert claimed is None
    assert assigned == 0
    stored = await bundles.get_by_id(project.id, bundle.id)
    assert stored.claimed_by_member_id == first.id


@pytest.mark.asyncio
async def test_claim_unknown_bundle(planned_project, projects, bundles):
    project = await planned_project()
    member = await projects.add_member(project.id, "user-1")

    with pytest.raises(EntityNotFoundError):
        await bundles.claim_bundle(project.id, 9999, member.id)


@pytest.mark.asyncio
async def test_claim_bundle_from_other_project(planned_project, projects, bundles):
    project_a = await planned_project()
    project_b = await planned_project()
    member = await projects.add_member(project_a.id, "user-1")
    foreign = (await bundles.get_by_project(project_b.id))[0]

    with pytest.raises(EntityNotFoundError):
        await bundles.claim_bundle(project_a.id, foreign.id, member.id)
