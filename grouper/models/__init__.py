from .plan import (
    Plan,
    PlanBundle,
    PlanTask,
    PlanDeliverable,
    PlanIssue,
    PlanValidationResult,
    Timeframe,
    TaskSize,
    TaskCategory,
    SIZE_TO_EFFORT,
    validate_plan,
    plan_json_schema,
    expected_bundle_count,
)
from .api_validation import (
    CreateProjectRequest,
    CreateProjectResponse,
    RetryPlanRequest,
    RetryPlanResponse,
    ClaimBundleResponse,
    PlanErrorBody,
)

__all__ = [
    "Plan",
    "PlanBundle",
    "PlanTask",
    "PlanDeliverable",
    "PlanIssue",
    "PlanValidationResult",
    "Timeframe",
    "TaskSize",
    "TaskCategory",
    "SIZE_TO_EFFORT",
    "validate_plan",
    "plan_json_schema",
    "expected_bundle_count",
    "CreateProjectRequest",
    "CreateProjectResponse",
    "RetryPlanRequest",
    "RetryPlanResponse",
    "ClaimBundleResponse",
    "PlanErrorBody",
]
