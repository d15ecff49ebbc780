"""
SQLAlchemy models for the planning store.

Schema includes:
- Projects with plan status, payload and join code
- Project members and planned (not yet registered) members
- Task bundles ("Person N"), durable across regenerations
- Tasks and deliverables, flagged as AI-generated or user-authored
- AI generation audit trail (one row per generation attempt)
"""

from datetime import datetime
from typing import Optional, List
from sqlalchemy import (
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
from sqlalchemy.sql import func
import enum


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ==================== ENUMS ====================

class PlanStatusEnum(str, enum.Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class TaskStatusEnum(str, enum.Enum):
    TODO = "todo"
    DOING = "doing"
    DONE = "done"


class AuditStatusEnum(str, enum.Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


# ==================== PROJECTS ====================

class ProjectDB(Base):
    """A group project created from an assignment description."""
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timeframe: Mapped[str] = mapped_column(String(20), nullable=False)  # twoDay, oneWeek, long
    assignment_details: Mapped[str] = mapped_column(Text, nullable=False)
    group_size: Mapped[int] = mapped_column(Integer, default=1)
    join_code: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    # Planning state: NULL (absent), pending, ready, failed
    plan_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    plan_error: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)  # {"code", "message"}
    plan_payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    members: Mapped[List["ProjectMemberDB"]] = relationship(
        "ProjectMemberDB", back_populates="project", cascade="all, delete-orphan"
    )
    bundles: Mapped[List["TaskBundleDB"]] = relationship(
        "TaskBundleDB", back_populates="project", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_projects_join_code", "join_code"),
        Index("idx_projects_plan_status", "plan_status"),
    )


class ProjectMemberDB(Base):
    """A registered user belonging to a project."""
    __tablename__ = "project_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    project: Mapped["ProjectDB"] = relationship("ProjectDB", back_populates="members")

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member"),
        Index("idx_members_user", "user_id"),
    )


class PlannedMemberDB(Base):
    """A named participant not yet linked to a real account."""
    __tablename__ = "project_planned_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False, default="TBD")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_planned_members_project", "project_id"),
    )


# ==================== BUNDLES ====================

class TaskBundleDB(Base):
    """A claimable group of tasks for one participant. Label is stable across regenerations."""
    __tablename__ = "task_bundles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), nullable=False)
    label: Mapped[str] = mapped_column(String(50), nullable=False)  # "Person N"
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    claimed_by_member_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("project_members.id"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    project: Mapped["ProjectDB"] = relationship("ProjectDB", back_populates="bundles")
    tasks: Mapped[List["TaskDB"]] = relationship("TaskDB", back_populates="bundle")

    __table_args__ = (
        UniqueConstraint("project_id", "label", name="uq_bundle_label"),
        Index("idx_bundles_project", "project_id"),
    )


# ==================== TASKS ====================

class TaskDB(Base):
    """A unit of work, either planner output or user-authored."""
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), nullable=False)
    bundle_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("task_bundles.id"), nullable=True)
    owner_member_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("project_members.id"), nullable=True
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)  # S, M, L
    status: Mapped[str] = mapped_column(String(10), default="todo")  # todo, doing, done

    is_ai_generated: Mapped[bool] = mapped_column(Boolean, default=False)
    blocked: Mapped[bool] = mapped_column(Boolean, default=False)
    blocked_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    bundle: Mapped[Optional["TaskBundleDB"]] = relationship("TaskBundleDB", back_populates="tasks")

    __table_args__ = (
        Index("idx_tasks_project", "project_id"),
        Index("idx_tasks_bundle_ai", "bundle_id", "is_ai_generated"),
        Index("idx_tasks_owner", "owner_member_id"),
    )


# ==================== DELIVERABLES ====================

class DeliverableDB(Base):
    """A tangible final artifact expected for submission."""
    __tablename__ = "deliverables"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    is_ai_generated: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_deliverables_project_ai", "project_id", "is_ai_generated"),
    )


# ==================== AUDIT ====================

class AIGenerationAuditDB(Base):
    """One row per plan generation attempt."""
    __tablename__ = "ai_generation_audit"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), nullable=False)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    trace_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="pending")

    # Input snapshot (assignment length only, not the text)
    input_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    input_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    input_timeframe: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    input_assignment_length: Mapped[int] = mapped_column(Integer, default=0)
    input_group_size: Mapped[int] = mapped_column(Integer, default=1)

    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    prompt_version: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Outcome
    output_plan: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    latency_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_ai_audit_project", "project_id"),
        Index("idx_ai_audit_status", "status"),
    )
