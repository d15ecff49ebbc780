"""
Plan reconciliation.

Merges a freshly generated Plan into a project's persisted bundles, tasks and
deliverables without discarding user work:

- Bundles are matched by label. Existing bundles get new display fields only;
  their claim is never touched.
- Under each bundle only AI-generated tasks are replaced. New tasks inherit
  the bundle's current claimant as owner.
- AI-generated deliverables are replaced; user-entered ones are kept.
- The project row gets the plan payload, status ready, and a cleared error.

Everything runs in one transaction, so a failure part-way leaves the project
exactly as it was (still pending) and a retry re-runs the merge from scratch.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError

from ..database.connection import Database, get_database
from ..database.models import (
    ProjectDB,
    TaskBundleDB,
    TaskDB,
    DeliverableDB,
    PlanStatusEnum,
    TaskStatusEnum,
)
from ..database.exceptions import (
    DatabaseConstraintError,
    DatabaseOperationError,
    EntityNotFoundError,
)
from ..models.plan import Plan

logger = logging.getLogger(__name__)


@dataclass
class PersistResult:
    bundles_inserted: int = 0
    bundles_updated: int = 0
    tasks_inserted: int = 0
    tasks_deleted: int = 0
    deliverables_inserted: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class PlanReconciler:
    """Writes validated plans into the store."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def persist_plan(self, project_id: int, plan: Plan) -> PersistResult:
        """
        Reconcile a validated plan into the project's rows and mark it ready.

        Safe to re-run: label is the bundle dedup key, so repeating the call
        with the same plan leaves one bundle per label and one copy of each
        AI-generated task.

        Raises:
            EntityNotFoundError: if the project row does not exist
            DatabaseConstraintError / DatabaseOperationError: on store failure
        """
        if not isinstance(plan, Plan):
            raise TypeError("persist_plan requires a validated Plan")

        result = PersistResult()
        now = datetime.now()

        try:
            async with self.db.session() as session:
                rows = await session.execute(
                    select(TaskBundleDB).where(TaskBundleDB.project_id == project_id)
                )
                existing: Dict[str, TaskBundleDB] = {b.label: b for b in rows.scalars().all()}

                for plan_bundle in plan.bundles:
                    bundle = existing.get(plan_bundle.label)
                    if bundle is not None:
                        bundle.title = plan_bundle.bundle_title
                        bundle.summary = plan_bundle.bundle_summary
                        bundle.updated_at = now
                        result.bundles_updated += 1
                    else:
                        bundle = TaskBundleDB(
                            project_id=project_id,
                            label=plan_bundle.label,
                            title=plan_bundle.bundle_title,
                            summary=plan_bundle.bundle_summary,
                        )
                        session.add(bundle)
                        result.bundles_inserted += 1
                    await session.flush()

                    owner_id = bundle.claimed_by_member_id

                    deleted = await session.execute(
                        delete(TaskDB)
                        .where(
                            TaskDB.bundle_id == bundle.id,
                            TaskDB.is_ai_generated.is_(True),
                        )
                        .execution_options(synchronize_session=False)
                    )
                    result.tasks_deleted += deleted.rowcount or 0

                    session.add_all([
                        TaskDB(
                            project_id=project_id,
                            bundle_id=bundle.id,
                            owner_member_id=owner_id,
                            title=task.title,
                            details=task.details,
                            category=task.category.value,
                            size=task.size.value,
                            status=TaskStatusEnum.TODO.value,
                            is_ai_generated=True,
                        )
                        for task in plan_bundle.tasks
                    ])
                    result.tasks_inserted += len(plan_bundle.tasks)

                await session.execute(
                    delete(DeliverableDB)
                    .where(
                        DeliverableDB.project_id == project_id,
                        DeliverableDB.is_ai_generated.is_(True),
                    )
                    .execution_options(synchronize_session=False)
                )
                session.add_all([
                    DeliverableDB(
                        project_id=project_id,
                        title=deliverable.title,
                        description=deliverable.description,
                        is_ai_generated=True,
                    )
                    for deliverable in plan.deliverables
                ])
                result.deliverables_inserted = len(plan.deliverables)
                await session.flush()

                updated = await session.execute(
                    update(ProjectDB)
                    .where(ProjectDB.id == project_id)
                    .values(
                        plan_payload=plan.to_payload(),
                        plan_status=PlanStatusEnum.READY.value,
                        plan_error=None,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
                if updated.rowcount != 1:
                    raise EntityNotFoundError(f"Project {project_id} not found")

        except EntityNotFoundError:
            raise

        except IntegrityError as e:
            logger.error(f"Constraint violation persisting plan for project {project_id}: {e}")
            raise DatabaseConstraintError(f"Cannot persist plan for project {project_id}: constraint violation")

        except Exception as e:
            logger.error(f"CRITICAL: Persisting plan failed for project {project_id}: {e}", exc_info=True)
            raise DatabaseOperationError(f"Failed to persist plan for project {project_id}: {e}")

        logger.info(f"Persisted plan for project {project_id}: {result.to_dict()}")
        return result


# Singleton
_plan_reconciler: Optional[PlanReconciler] = None


def get_plan_reconciler() -> PlanReconciler:
    """Get the plan reconciler singleton."""
    global _plan_reconciler
    if _plan_reconciler is None:
        _plan_reconciler = PlanReconciler()
    return _plan_reconciler
