"""
Task repository.

Planner-generated tasks are written by the reconciler; this repository reads
tasks and creates the user-authored ones, which regeneration never deletes.
"""

import logging
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import TaskDB, TaskStatusEnum
from ..exceptions import DatabaseConstraintError, DatabaseOperationError

logger = logging.getLogger(__name__)


class TaskRepository:
    """Repository for task operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def get_by_project(self, project_id: int, ai_generated: Optional[bool] = None) -> List[TaskDB]:
        """Get all tasks for a project, optionally filtered by origin."""
        async with self.db.session() as session:
            query = select(TaskDB).where(TaskDB.project_id == project_id)
            if ai_generated is not None:
                query = query.where(TaskDB.is_ai_generated == ai_generated)
            result = await session.execute(query.order_by(TaskDB.id))
            return list(result.scalars().all())

    async def get_by_bundle(self, bundle_id: int) -> List[TaskDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskDB)
                .where(TaskDB.bundle_id == bundle_id)
                .order_by(TaskDB.id)
            )
            return list(result.scalars().all())

    async def create_manual(
        self,
        project_id: int,
        title: str,
        bundle_id: Optional[int] = None,
        details: Optional[str] = None,
        category: Optional[str] = None,
        size: Optional[str] = None,
        owner_member_id: Optional[int] = None,
    ) -> TaskDB:
        """Create a user-authored task."""
        async with self.db.session() as session:
            try:
                task = TaskDB(
                    project_id=project_id,
                    bundle_id=bundle_id,
                    owner_member_id=owner_member_id,
                    title=title,
                    details=details,
                    category=category,
                    size=size,
                    status=TaskStatusEnum.TODO.value,
                    is_ai_generated=False,
                )
                session.add(task)
                await session.flush()

                logger.info(f"Created manual task {task.id} in project {project_id}")
                return task

            except IntegrityError as e:
                logger.error(f"Constraint violation creating task in project {project_id}: {e}")
                raise DatabaseConstraintError(f"Cannot create task in project {project_id}: constraint violation")

            except Exception as e:
                logger.error(f"CRITICAL: Task creation failed in project {project_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create task: {e}")


# Singleton
_task_repository: Optional[TaskRepository] = None


def get_task_repository() -> TaskRepository:
    """Get the task repository singleton."""
    global _task_repository
    if _task_repository is None:
        _task_repository = TaskRepository()
    return _task_repository
