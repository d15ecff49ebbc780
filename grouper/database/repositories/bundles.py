"""
Task bundle repository.

Bundles are durable across plan regenerations: the label ("Person N") is the
join key, and a claim, once set, is only ever written here.
"""

import logging
from typing import Optional, List, Tuple
from datetime import datetime

from sqlalchemy import select, update

from ..connection import Database, get_database
from ..models import TaskBundleDB, TaskDB
from ..exceptions import DatabaseOperationError, EntityNotFoundError

logger = logging.getLogger(__name__)


class BundleRepository:
    """Repository for task bundle operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def get_by_project(self, project_id: int) -> List[TaskBundleDB]:
        """Get a project's bundles in creation order."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskBundleDB)
                .where(TaskBundleDB.project_id == project_id)
                .order_by(TaskBundleDB.id)
            )
            return list(result.scalars().all())

    async def get_by_id(self, project_id: int, bundle_id: int) -> Optional[TaskBundleDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskBundleDB).where(
                    TaskBundleDB.id == bundle_id,
                    TaskBundleDB.project_id == project_id,
                )
            )
            return result.scalar_one_or_none()

    async def claim_bundle(
        self,
        project_id: int,
        bundle_id: int,
        member_id: int,
    ) -> Tuple[Optional[TaskBundleDB], int]:
        """
        Claim an unclaimed bundle and take ownership of its unowned tasks.

        Both writes happen in one transaction. An existing claim is never
        overwritten.

        Returns:
            (bundle, tasks_assigned); bundle is None when someone already holds it

        Raises:
            EntityNotFoundError: if the bundle does not belong to the project
        """
        async with self.db.session() as session:
            try:
                now = datetime.now()
                claimed = await session.execute(
                    update(TaskBundleDB)
                    .where(
                        TaskBundleDB.id == bundle_id,
                        TaskBundleDB.project_id == project_id,
                        TaskBundleDB.claimed_by_member_id.is_(None),
                    )
                    .values(claimed_by_member_id=member_id, updated_at=now)
                    .execution_options(synchronize_session=False)
                )

                if claimed.rowcount != 1:
                    existing = await session.execute(
                        select(TaskBundleDB.id).where(
                            TaskBundleDB.id == bundle_id,
                            TaskBundleDB.project_id == project_id,
                        )
                    )
                    if existing.scalar_one_or_none() is None:
                        raise EntityNotFoundError(f"Bundle {bundle_id} not found in project {project_id}")
                    logger.info(f"Bundle {bundle_id} already claimed; member {member_id} not assigned")
                    return None, 0

                assigned = await session.execute(
                    update(TaskDB)
                    .where(
                        TaskDB.project_id == project_id,
                        TaskDB.bundle_id == bundle_id,
                        TaskDB.owner_member_id.is_(None),
                    )
                    .values(owner_member_id=member_id, updated_at=now)
                    .execution_options(synchronize_session=False)
                )

                result = await session.execute(
                    select(TaskBundleDB).where(TaskBundleDB.id == bundle_id)
                )
                bundle = result.scalar_one()

                logger.info(
                    f"Bundle {bundle_id} ({bundle.label}) claimed by member {member_id}, "
                    f"assigned {assigned.rowcount} tasks"
                )
                return bundle, assigned.rowcount

            except EntityNotFoundError:
                raise

            except Exception as e:
                logger.error(f"CRITICAL: Claiming bundle {bundle_id} failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to claim bundle {bundle_id}: {e}")


# Singleton
_bundle_repository: Optional[BundleRepository] = None


def get_bundle_repository() -> BundleRepository:
    """Get the bundle repository singleton."""
    global _bundle_repository
    if _bundle_repository is None:
        _bundle_repository = BundleRepository()
    return _bundle_repository
