"""
Project repository.

Handles:
- Project rows and their planning state (plan_status, plan_error, plan_payload)
- Members and planned members
- Join code collision lookups
- The compare-and-swap that claims plan generation for one caller
"""

import logging
from typing import Optional, List
from datetime import datetime, timedelta

from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import ProjectDB, ProjectMemberDB, PlannedMemberDB, PlanStatusEnum
from ..exceptions import DatabaseConstraintError, DatabaseOperationError, EntityNotFoundError

logger = logging.getLogger(__name__)


class ProjectRepository:
    """Repository for project operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    # ==================== PROJECTS ====================

    async def create(
        self,
        name: str,
        timeframe: str,
        assignment_details: str,
        group_size: int,
        join_code: str,
        description: Optional[str] = None,
        plan_status: Optional[str] = PlanStatusEnum.PENDING.value,
    ) -> ProjectDB:
        """Create a new project, by default already flagged pending."""
        async with self.db.session() as session:
            try:
                project = ProjectDB(
                    name=name,
                    description=description,
                    timeframe=timeframe,
                    assignment_details=assignment_details,
                    group_size=group_size,
                    join_code=join_code,
                    plan_status=plan_status,
                )
                session.add(project)
                await session.flush()

                logger.info(f"Created project {project.id} ({name}) join_code={join_code}")
                return project

            except IntegrityError as e:
                logger.error(f"Constraint violation creating project {name}: {e}")
                raise DatabaseConstraintError(f"Cannot create project {name}: constraint violation")

            except Exception as e:
                logger.error(f"CRITICAL: Project creation failed for {name}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create project {name}: {e}")

    async def get_by_id(self, project_id: int) -> Optional[ProjectDB]:
        """Get a live (not soft-deleted) project by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ProjectDB)
                .where(ProjectDB.id == project_id, ProjectDB.deleted_at.is_(None))
            )
            return result.scalar_one_or_none()

    async def join_code_in_use(self, code: str, window_days: int = 30) -> bool:
        """True if an active project, or one deleted within the window, holds the code."""
        cutoff = datetime.now() - timedelta(days=window_days)
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count(ProjectDB.id)).where(
                    ProjectDB.join_code == code,
                    or_(ProjectDB.deleted_at.is_(None), ProjectDB.deleted_at >= cutoff),
                )
            )
            return (result.scalar() or 0) > 0

    async def soft_delete(self, project_id: int) -> bool:
        """Mark a project deleted. Its join code stays reserved for the reuse window."""
        async with self.db.session() as session:
            result = await session.execute(
                update(ProjectDB)
                .where(ProjectDB.id == project_id, ProjectDB.deleted_at.is_(None))
                .values(deleted_at=datetime.now())
            )
            return result.rowcount == 1

    # ==================== MEMBERS ====================

    async def add_member(
        self,
        project_id: int,
        user_id: str,
        display_name: Optional[str] = None,
    ) -> ProjectMemberDB:
        """Add a registered user to a project."""
        async with self.db.session() as session:
            try:
                member = ProjectMemberDB(
                    project_id=project_id,
                    user_id=user_id,
                    display_name=display_name,
                )
                session.add(member)
                await session.flush()

                logger.debug(f"Added member {user_id} to project {project_id}")
                return member

            except IntegrityError as e:
                logger.error(f"Constraint violation adding {user_id} to project {project_id}: {e}")
                raise DatabaseConstraintError(f"User {user_id} is already a member of project {project_id}")

            except Exception as e:
                logger.error(f"Failed to add member to project {project_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to add member to project {project_id}: {e}")

    async def add_planned_members(self, project_id: int, names: List[Optional[str]]) -> List[PlannedMemberDB]:
        """Add placeholder participants. Blank names become "TBD"."""
        if not names:
            return []

        async with self.db.session() as session:
            try:
                planned = [
                    PlannedMemberDB(project_id=project_id, display_name=(name or "").strip() or "TBD")
                    for name in names
                ]
                session.add_all(planned)
                await session.flush()
                return planned

            except Exception as e:
                logger.error(f"Failed to add planned members to project {project_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to add planned members to project {project_id}: {e}")

    async def get_planned_members(self, project_id: int) -> List[PlannedMemberDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(PlannedMemberDB)
                .where(PlannedMemberDB.project_id == project_id)
                .order_by(PlannedMemberDB.id)
            )
            return list(result.scalars().all())

    async def get_member(self, project_id: int, user_id: str) -> Optional[ProjectMemberDB]:
        """Get a user's membership row for a project, if any."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ProjectMemberDB).where(
                    ProjectMemberDB.project_id == project_id,
                    ProjectMemberDB.user_id == user_id,
                )
            )
            return result.scalar_one_or_none()

    # ==================== PLAN STATUS ====================

    async def claim_plan_generation(self, project_id: int) -> bool:
        """
        Atomically move a project to pending unless it already is.

        This conditional update is the only mutual-exclusion primitive for
        generation: whichever caller changes the row owns the attempt.

        Returns:
            True if this caller won the claim, False if another attempt is in flight
        """
        async with self.db.session() as session:
            result = await session.execute(
                update(ProjectDB)
                .where(
                    ProjectDB.id == project_id,
                    or_(
                        ProjectDB.plan_status.is_(None),
                        ProjectDB.plan_status != PlanStatusEnum.PENDING.value,
                    ),
                )
                .values(plan_status=PlanStatusEnum.PENDING.value, plan_error=None, updated_at=datetime.now())
                .execution_options(synchronize_session=False)
            )
            claimed = result.rowcount == 1

        logger.info(f"Plan generation claim for project {project_id}: {'won' if claimed else 'lost'}")
        return claimed

    async def mark_ready_without_plan(self, project_id: int) -> None:
        """Mark ready with no plan payload (diagnostic bypass only)."""
        await self._set_status(project_id, PlanStatusEnum.READY.value, plan_error=None)

    async def mark_failed(self, project_id: int, code: str, message: str) -> None:
        """Record a failed generation with its error code and message."""
        await self._set_status(
            project_id,
            PlanStatusEnum.FAILED.value,
            plan_error={"code": code, "message": message},
        )
        logger.warning(f"Project {project_id} plan failed: {code}: {message}")

    async def _set_status(self, project_id: int, status: str, plan_error: Optional[dict]) -> None:
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    update(ProjectDB)
                    .where(ProjectDB.id == project_id)
                    .values(plan_status=status, plan_error=plan_error, updated_at=datetime.now())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise EntityNotFoundError(f"Project {project_id} not found")

            except EntityNotFoundError:
                raise

            except Exception as e:
                logger.error(f"CRITICAL: Setting plan_status={status} failed for project {project_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update project {project_id}: {e}")


# Singleton
_project_repository: Optional[ProjectRepository] = None


def get_project_repository() -> ProjectRepository:
    """Get the project repository singleton."""
    global _project_repository
    if _project_repository is None:
        _project_repository = ProjectRepository()
    return _project_repository
