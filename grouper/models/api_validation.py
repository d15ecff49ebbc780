"""
Pydantic models for API request and response bodies.

The assignment text length is not capped here. An over-long
assignment still creates the project, and planning then fails with
ASSIGNMENT_TOO_LONG so the user can edit and retry.
"""

from typing import Optional, List, Literal, Dict, Any
from pydantic import BaseModel, Field, field_validator

from .plan import Timeframe


# ============================================
# CREATE PROJECT WITH PLAN
# ============================================

class CreateProjectRequest(BaseModel):
    """Input validation for creating a project and generating its plan."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    timeframe: Timeframe
    assignment_details: str = Field(..., min_length=1)
    group_size: int = Field(..., ge=1, le=12)
    member_names: List[str] = Field(default_factory=list, max_length=12)
    trace_id: Optional[str] = Field(None, max_length=100)
    debug_skip_openai: bool = False

    @field_validator("name", "assignment_details")
    @classmethod
    def validate_not_blank(cls, v):
        stripped = v.strip()
        if not stripped:
            raise ValueError("cannot be empty after stripping whitespace")
        return stripped

    @field_validator("member_names")
    @classmethod
    def validate_member_names(cls, v):
        return [name.strip()[:255] for name in v]


class PlanErrorBody(BaseModel):
    code: str
    message: str


class CreateProjectResponse(BaseModel):
    project_id: int
    plan_status: Literal["ready", "failed"]
    error: Optional[PlanErrorBody] = None
    trace_id: Optional[str] = None


# ============================================
# RETRY PLAN
# ============================================

class RetryPlanRequest(BaseModel):
    """Input validation for re-running plan generation."""
    project_id: int = Field(..., gt=0)
    force: bool = False


class RetryPlanResponse(BaseModel):
    status: Literal["pending", "ready", "failed"]
    plan_payload: Optional[Dict[str, Any]] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


# ============================================
# BUNDLE CLAIM
# ============================================

class ClaimBundleResponse(BaseModel):
    bundle_id: int
    label: str
    claimed_by_member_id: int
    tasks_assigned: int
