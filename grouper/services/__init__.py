"""
Services for business logic: project creation, plan retry, the generation
pipeline they share, reconciliation and join code allocation.
"""

from .exceptions import (
    ServiceError,
    AuthenticationError,
    ForbiddenError,
    ProjectNotFoundError,
    BundleClaimConflictError,
    JoinCodeAllocationError,
)
from .identity import CallerIdentity, IdentityProvider, RemoteIdentityProvider, get_identity_provider
from .join_codes import JoinCodeAllocator, JOIN_CODE_ALPHABET
from .plan_persistence import PlanReconciler, PersistResult, get_plan_reconciler
from .plan_pipeline import PlanPipeline, PipelineOutcome
from .project_creation import ProjectCreationService, resolve_trace_id
from .plan_retry import PlanRetryService

__all__ = [
    "ServiceError",
    "AuthenticationError",
    "ForbiddenError",
    "ProjectNotFoundError",
    "BundleClaimConflictError",
    "JoinCodeAllocationError",
    "CallerIdentity",
    "IdentityProvider",
    "RemoteIdentityProvider",
    "get_identity_provider",
    "JoinCodeAllocator",
    "JOIN_CODE_ALPHABET",
    "PlanReconciler",
    "PersistResult",
    "get_plan_reconciler",
    "PlanPipeline",
    "PipelineOutcome",
    "ProjectCreationService",
    "resolve_trace_id",
    "PlanRetryService",
]
