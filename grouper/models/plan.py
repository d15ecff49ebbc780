"""
Plan schema and validator.

A Plan is the structured output of one generation attempt: deliverables,
one bundle per participant ("Person 1".."Person N") and the tasks inside each
bundle. Models are closed (extra fields are rejected) so generation drift is
caught on receipt, and validation collects every issue rather than stopping
at the first one.
"""

import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


MIN_GROUP_SIZE = 1
MAX_GROUP_SIZE = 12


class Timeframe(str, Enum):
    """How long the group has to finish the assignment."""
    TWO_DAY = "twoDay"
    ONE_WEEK = "oneWeek"
    LONG = "long"


class TaskSize(str, Enum):
    S = "S"
    M = "M"
    L = "L"


class TaskCategory(str, Enum):
    RESEARCH = "Research"
    WRITING = "Writing"
    SLIDES = "Slides"
    CODING = "Coding"
    ANALYSIS = "Analysis"
    ADMIN = "Admin"
    DESIGN = "Design"
    REVIEW = "Review"


SIZE_TO_EFFORT: Dict[str, int] = {"S": 1, "M": 2, "L": 3}


class PlanTask(BaseModel):
    """A single actionable task inside a bundle."""
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1)
    details: Optional[str] = None
    category: TaskCategory
    size: TaskSize
    effort_points: int = Field(..., ge=1, le=3, strict=True)

    @model_validator(mode="after")
    def check_effort_matches_size(self):
        expected = SIZE_TO_EFFORT[self.size.value]
        if self.effort_points != expected:
            raise ValueError(
                f"effort_points must match size mapping (S->1, M->2, L->3). "
                f"Expected {expected} for size {self.size.value}"
            )
        return self


class PlanBundle(BaseModel):
    """Work for one participant."""
    model_config = ConfigDict(extra="forbid")

    label: str = Field(..., min_length=1)
    bundle_title: str = Field(..., min_length=1)
    bundle_summary: Optional[str] = None
    tasks: List[PlanTask] = Field(..., min_length=1)


class PlanDeliverable(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1)
    description: Optional[str] = None


class Plan(BaseModel):
    """A complete, validated work breakdown."""
    model_config = ConfigDict(extra="forbid")

    timeframe: Optional[Timeframe] = None
    deliverables: List[PlanDeliverable]
    bundles: List[PlanBundle] = Field(..., min_length=1)
    assumptions: Optional[List[str]] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict, as stored on the project row and audit trail."""
        return self.model_dump(mode="json", exclude_none=True)


class PlanIssue(BaseModel):
    """One validation problem found in a candidate plan."""
    path: str
    message: str
    kind: str  # schema, effort_mismatch, bundle_count, bundle_label


class PlanValidationResult(BaseModel):
    plan: Optional[Plan] = None
    issues: List[PlanIssue] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.plan is not None and not self.issues

    def has_only(self, kind: str) -> bool:
        return bool(self.issues) and all(issue.kind == kind for issue in self.issues)

    def summary(self) -> str:
        return "; ".join(f"{issue.path}: {issue.message}" for issue in self.issues)


def expected_bundle_count(group_size: Any) -> int:
    """Clamp a requested group size to the supported range."""
    try:
        n = math.floor(float(group_size))
    except (TypeError, ValueError):
        n = MIN_GROUP_SIZE
    return max(MIN_GROUP_SIZE, min(MAX_GROUP_SIZE, n))


def bundle_labels(count: int) -> List[str]:
    return [f"Person {i + 1}" for i in range(count)]


def bundle_effort(bundle: PlanBundle) -> int:
    return sum(task.effort_points for task in bundle.tasks)


def effort_spread(plan: Plan) -> int:
    """Difference between the heaviest and lightest bundle totals."""
    totals = [bundle_effort(b) for b in plan.bundles]
    return max(totals) - min(totals) if totals else 0


def _format_loc(loc) -> str:
    parts = []
    for item in loc:
        if isinstance(item, int):
            parts.append(f"[{item}]")
        else:
            parts.append(f".{item}" if parts else str(item))
    return "".join(parts) or "plan"


def _issues_from_error(error: ValidationError) -> List[PlanIssue]:
    issues = []
    for err in error.errors():
        message = err.get("msg", "invalid")
        kind = "effort_mismatch" if "effort_points must match" in message else "schema"
        issues.append(PlanIssue(path=_format_loc(err.get("loc", ())), message=message, kind=kind))
    return issues


def _advisory_warnings(plan: Plan) -> List[str]:
    warnings = []
    spread = effort_spread(plan)
    if spread > 1:
        warnings.append(f"bundle effort totals differ by {spread} points (target <= 1)")
    if plan.timeframe == Timeframe.LONG:
        for bundle in plan.bundles:
            if not any(t.category == TaskCategory.REVIEW for t in bundle.tasks):
                warnings.append(f"{bundle.label} has no Review task for a long timeframe")
    return warnings


def validate_plan(candidate: Any, expected_bundles: int) -> PlanValidationResult:
    """
    Validate a candidate plan against the schema and cross-field rules.

    Args:
        candidate: Untrusted data, usually decoded JSON from the generation backend
        expected_bundles: Exact number of bundles required (already clamped)

    Returns:
        PlanValidationResult with the parsed plan (when the shape is valid), every
        issue found, and advisory warnings. Warnings never make a plan invalid.
    """
    issues: List[PlanIssue] = []
    plan: Optional[Plan] = None

    if not isinstance(candidate, dict):
        return PlanValidationResult(
            issues=[PlanIssue(path="plan", message="plan is not an object", kind="schema")]
        )

    try:
        plan = Plan.model_validate(candidate)
    except ValidationError as e:
        issues.extend(_issues_from_error(e))

    raw_bundles = candidate.get("bundles")
    if isinstance(raw_bundles, list):
        if len(raw_bundles) != expected_bundles:
            issues.append(PlanIssue(
                path="bundles",
                message=f"expected {expected_bundles} bundles, got {len(raw_bundles)}",
                kind="bundle_count",
            ))
        else:
            labels = [b.get("label") if isinstance(b, dict) else None for b in raw_bundles]
            wanted = bundle_labels(expected_bundles)
            if labels != wanted:
                issues.append(PlanIssue(
                    path="bundles.label",
                    message=f"bundle labels must be exactly {', '.join(wanted)} in order",
                    kind="bundle_label",
                ))

    if issues:
        return PlanValidationResult(plan=None, issues=issues)

    return PlanValidationResult(plan=plan, warnings=_advisory_warnings(plan))


def plan_json_schema() -> Dict[str, Any]:
    """
    Strict JSON Schema handed to the generation backend as an output constraint.

    Structured-output mode requires every property to be listed as required, so
    optional fields (details, bundle_summary, description) are required here and
    may be empty strings. The result is still validated independently on receipt.
    """
    categories = [c.value for c in TaskCategory]
    return {
        "type": "object",
        "additionalProperties": False,
        "required": ["timeframe", "deliverables", "bundles", "assumptions"],
        "properties": {
            "timeframe": {"type": "string", "enum": [t.value for t in Timeframe]},
            "deliverables": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "required": ["title", "description"],
                    "properties": {
                        "title": {"type": "string"},
                        "description": {"type": "string"},
                    },
                },
            },
            "bundles": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "required": ["label", "bundle_title", "bundle_summary", "tasks"],
                    "properties": {
                        "label": {"type": "string"},
                        "bundle_title": {"type": "string"},
                        "bundle_summary": {"type": "string"},
                        "tasks": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "additionalProperties": False,
                                "required": ["title", "details", "category", "size", "effort_points"],
                                "properties": {
                                    "title": {"type": "string"},
                                    "details": {"type": "string"},
                                    "category": {"type": "string", "enum": categories},
                                    "size": {"type": "string", "enum": [s.value for s in TaskSize]},
                                    "effort_points": {"type": "integer", "enum": [1, 2, 3]},
                                },
                            },
                        },
                    },
                },
            },
            "assumptions": {"type": "array", "items": {"type": "string"}},
        },
    }
