"""
Repository classes for database operations.

Each repository handles reads and writes for one aggregate. Plan
reconciliation, which spans bundles, tasks, deliverables and the project row
in one transaction, lives in grouper.services.plan_persistence.
"""

from .projects import ProjectRepository, get_project_repository
from .bundles import BundleRepository, get_bundle_repository
from .tasks import TaskRepository, get_task_repository
from .deliverables import DeliverableRepository, get_deliverable_repository
from .audit import AuditRepository, get_audit_repository

__all__ = [
    "ProjectRepository",
    "get_project_repository",
    "BundleRepository",
    "get_bundle_repository",
    "TaskRepository",
    "get_task_repository",
    "DeliverableRepository",
    "get_deliverable_repository",
    "AuditRepository",
    "get_audit_repository",
]
