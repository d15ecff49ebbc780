"""
Pytest configuration and shared fixtures.
"""

import pytest
import pytest_asyncio

from grouper.ai.planner import PlanGenerator
from grouper.database.connection import Database
from grouper.database.repositories import (
    AuditRepository,
    BundleRepository,
    DeliverableRepository,
    ProjectRepository,
    TaskRepository,
)
from grouper.services.identity import CallerIdentity
from grouper.services.plan_persistence import PlanReconciler


@pytest_asyncio.fixture
async def database(tmp_path):
    """A real SQLite store, one file per test."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'grouper.db'}")
    assert await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def projects(database):
    return ProjectRepository(database)


@pytest.fixture
def bundles(database):
    return BundleRepository(database)


@pytest.fixture
def tasks(database):
    return TaskRepository(database)


@pytest.fixture
def deliverables(database):
    return DeliverableRepository(database)


@pytest.fixture
def audit(database):
    return AuditRepository(database)


@pytest.fixture
def reconciler(database):
    return PlanReconciler(database)


@pytest.fixture
def stub_generator():
    """Generator in deterministic stub mode; never touches the network."""
    return PlanGenerator(use_stub=True, timeout_ms=5000, max_assignment_length=18000)


@pytest.fixture
def caller():
    return CallerIdentity(user_id="user-creator", email="creator@example.com")


@pytest.fixture
def make_project(projects):
    """Factory for pending projects."""
    async def _make(group_size=3, timeframe="oneWeek", join_code="ABC234", **overrides):
        fields = dict(
            name="History essay",
            description="Compare two revolutions",
            timeframe=timeframe,
            assignment_details="Write a 3000 word essay comparing the French and American revolutions.",
            group_size=group_size,
            join_code=join_code,
        )
        fields.update(overrides)
        return await projects.create(**fields)
    return _make
