"""Deliverable repository. Reads deliverables and creates user-entered ones."""

import logging
from typing import Optional, List

from sqlalchemy import select

from ..connection import Database, get_database
from ..models import DeliverableDB
from ..exceptions import DatabaseOperationError

logger = logging.getLogger(__name__)


class DeliverableRepository:
    """Repository for deliverable operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def get_by_project(self, project_id: int, ai_generated: Optional[bool] = None) -> List[DeliverableDB]:
        async with self.db.session() as session:
            query = select(DeliverableDB).where(DeliverableDB.project_id == project_id)
            if ai_generated is not None:
                query = query.where(DeliverableDB.is_ai_generated == ai_generated)
            result = await session.execute(query.order_by(DeliverableDB.id))
            return list(result.scalars().all())

    async def create_manual(
        self,
        project_id: int,
        title: str,
        description: Optional[str] = None,
        url: Optional[str] = None,
    ) -> DeliverableDB:
        """Create a user-entered deliverable."""
        async with self.db.session() as session:
            try:
                deliverable = DeliverableDB(
                    project_id=project_id,
                    title=title,
                    description=description,
                    url=url,
                    is_ai_generated=False,
                )
                session.add(deliverable)
                await session.flush()
                return deliverable

            except Exception as e:
                logger.error(f"Deliverable creation failed in project {project_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create deliverable: {e}")


# Singleton
_deliverable_repository: Optional[DeliverableRepository] = None


def get_deliverable_repository() -> DeliverableRepository:
    """Get the deliverable repository singleton."""
    global _deliverable_repository
    if _deliverable_repository is None:
        _deliverable_repository = DeliverableRepository()
    return _deliverable_repository
