"""
Persistent store for Grouper.

Handles:
- Projects, members and planned members
- Task bundles, tasks and deliverables produced by the planner or by users
- AI generation audit trail
"""

from .connection import (
    get_database,
    Database,
    init_database,
    close_database,
)
from .models import (
    Base,
    ProjectDB,
    ProjectMemberDB,
    PlannedMemberDB,
    TaskBundleDB,
    TaskDB,
    DeliverableDB,
    AIGenerationAuditDB,
)

__all__ = [
    "get_database",
    "Database",
    "init_database",
    "close_database",
    "Base",
    "ProjectDB",
    "ProjectMemberDB",
    "PlannedMemberDB",
    "TaskBundleDB",
    "TaskDB",
    "DeliverableDB",
    "AIGenerationAuditDB",
]
