"""
AI generation audit repository.

One row per generation attempt, opened as pending before the backend call and
closed as ready or failed. Only the assignment length is recorded, never the
text itself.

Audit writes never abort generation: every method logs and returns None on
failure.
"""

import logging
from typing import Optional, List, Dict, Any
from datetime import datetime

from sqlalchemy import select, update

from ..connection import Database, get_database
from ..models import AIGenerationAuditDB, AuditStatusEnum

logger = logging.getLogger(__name__)


class AuditRepository:
    """Repository for generation audit operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def start(
        self,
        project_id: int,
        created_by_user_id: Optional[str],
        trace_id: Optional[str],
        title: Optional[str],
        description: Optional[str],
        timeframe: Optional[str],
        assignment_length: int,
        group_size: int,
        model: Optional[str] = None,
        prompt_version: Optional[str] = None,
    ) -> Optional[AIGenerationAuditDB]:
        """Open a pending audit row for a generation attempt."""
        try:
            async with self.db.session() as session:
                entry = AIGenerationAuditDB(
                    project_id=project_id,
                    created_by_user_id=created_by_user_id,
                    trace_id=trace_id,
                    status=AuditStatusEnum.PENDING.value,
                    input_title=title,
                    input_description=description,
                    input_timeframe=timeframe,
                    input_assignment_length=assignment_length,
                    input_group_size=group_size,
                    model=model,
                    prompt_version=prompt_version,
                )
                session.add(entry)
                await session.flush()

            logger.debug(f"Audit {entry.id} opened for project {project_id} trace={trace_id}")
            return entry

        except Exception as e:
            logger.error(f"Error creating generation audit row for project {project_id}: {e}")
            return None

    async def mark_ready(
        self,
        audit_id: Optional[int],
        output_plan: Optional[Dict[str, Any]],
        latency_ms: Optional[int],
    ) -> Optional[bool]:
        """Close an audit row as ready with the generated plan."""
        return await self._close(
            audit_id,
            status=AuditStatusEnum.READY.value,
            output_plan=output_plan,
            latency_ms=latency_ms,
        )

    async def mark_failed(
        self,
        audit_id: Optional[int],
        error_code: str,
        error_message: str,
        latency_ms: Optional[int],
    ) -> Optional[bool]:
        """Close an audit row as failed."""
        return await self._close(
            audit_id,
            status=AuditStatusEnum.FAILED.value,
            error_code=error_code,
            error_message=error_message,
            latency_ms=latency_ms,
        )

    async def _close(self, audit_id: Optional[int], **values) -> Optional[bool]:
        if audit_id is None:
            return None

        try:
            async with self.db.session() as session:
                await session.execute(
                    update(AIGenerationAuditDB)
                    .where(AIGenerationAuditDB.id == audit_id)
                    .values(updated_at=datetime.now(), **values)
                    .execution_options(synchronize_session=False)
                )
            return True

        except Exception as e:
            logger.error(f"Error updating generation audit row {audit_id}: {e}")
            return None

    async def get_for_project(self, project_id: int) -> List[AIGenerationAuditDB]:
        """Get all audit rows for a project, oldest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(AIGenerationAuditDB)
                .where(AIGenerationAuditDB.project_id == project_id)
                .order_by(AIGenerationAuditDB.id)
            )
            return list(result.scalars().all())


# Singleton
_audit_repository: Optional[AuditRepository] = None


def get_audit_repository() -> AuditRepository:
    """Get the audit repository singleton."""
    global _audit_repository
    if _audit_repository is None:
        _audit_repository = AuditRepository()
    return _audit_repository
