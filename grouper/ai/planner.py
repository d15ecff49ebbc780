"""
Plan generator: turns assignment inputs into a validated Plan.

Real mode calls the OpenAI Responses API with a strict JSON-schema output
constraint, bounded by an explicit timeout. Stub mode synthesizes a
deterministic plan with no external call. Both paths go through the same
validator and never return a partially valid plan.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from openai import AsyncOpenAI, APIStatusError, APITimeoutError

from config import settings
from .exceptions import PlanError, PlanErrorCode
from .prompts import build_prompt
from .response_parsing import extract_plan_json
from ..models.plan import (
    Plan,
    SIZE_TO_EFFORT,
    Timeframe,
    bundle_labels,
    expected_bundle_count,
    plan_json_schema,
    validate_plan,
)

logger = logging.getLogger(__name__)

SCHEMA_NAME = "PlanV1"

# Stub task count per bundle for each timeframe
STUB_TASK_COUNTS = {
    Timeframe.TWO_DAY.value: 2,
    Timeframe.ONE_WEEK.value: 5,
    Timeframe.LONG.value: 7,
}
STUB_SIZE_CYCLE = ["L", "M", "S"]


@dataclass
class PlanInput:
    """Inputs to a single, stateless plan generation."""
    title: str
    timeframe: str
    assignment_details: str
    group_size: int
    description: Optional[str] = None

    @classmethod
    def from_project(cls, project) -> "PlanInput":
        return cls(
            title=project.name or "",
            description=project.description,
            timeframe=project.timeframe,
            assignment_details=project.assignment_details or "",
            group_size=project.group_size or 1,
        )


class PlanBackend(Protocol):
    """An external text-generation service that honours a JSON-schema output format."""

    model: str

    @property
    def configured(self) -> bool:
        ...

    async def complete(self, prompt: str, schema: Dict[str, Any]) -> Any:
        ...


class OpenAIPlanBackend:
    """Generation backend on the OpenAI Responses API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ):
        self.api_key = settings.openai_api_key if api_key is None else api_key
        self.model = model or settings.openai_model
        self.base_url = base_url or settings.openai_base_url
        self.timeout_ms = timeout_ms or settings.openai_timeout_ms
        self._client: Optional[AsyncOpenAI] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout_ms / 1000,
                max_retries=0,  # retries are user-initiated
            )
        return self._client

    async def complete(self, prompt: str, schema: Dict[str, Any]) -> Any:
        """Request schema-constrained output and return the response as a plain dict."""
        response = await self._get_client().responses.create(
            model=self.model,
            input=[{"role": "user", "content": prompt}],
            text={
                "format": {
                    "type": "json_schema",
                    "name": SCHEMA_NAME,
                    "strict": True,
                    "schema": schema,
                }
            },
        )
        data = response.model_dump() if hasattr(response, "model_dump") else response
        # output_text is a computed property on the SDK object, not a dumped field
        output_text = getattr(response, "output_text", None)
        if isinstance(data, dict) and output_text and not data.get("output_text"):
            data["output_text"] = output_text
        return data


def build_stub_plan(timeframe: str, group_size: int) -> Dict[str, Any]:
    """Deterministic plan for a (timeframe, group_size) pair."""
    timeframe = Timeframe(timeframe).value
    count = STUB_TASK_COUNTS.get(timeframe, 4)
    bundles = []
    for label in bundle_labels(expected_bundle_count(group_size)):
        tasks: List[Dict[str, Any]] = []
        for j in range(count):
            size = STUB_SIZE_CYCLE[j % len(STUB_SIZE_CYCLE)]
            tasks.append({
                "title": f"{label} task {j + 1}",
                "details": f"Complete {label} task {j + 1}. Done when deliverable is produced.",
                "category": "Research",
                "size": size,
                "effort_points": SIZE_TO_EFFORT[size],
            })
        if timeframe == Timeframe.LONG.value and not any(t["category"] == "Review" for t in tasks):
            tasks.append({
                "title": f"{label} review",
                "details": "Review other's work. Done when feedback submitted.",
                "category": "Review",
                "size": "S",
                "effort_points": SIZE_TO_EFFORT["S"],
            })
        bundles.append({
            "label": label,
            "bundle_title": f"Bundle for {label}",
            "bundle_summary": f"Auto-generated bundle for {label}",
            "tasks": tasks,
        })

    return {
        "timeframe": timeframe,
        "deliverables": [{"title": "Final submission", "description": "Project deliverable (PDF or link)"}],
        "bundles": bundles,
        "assumptions": ["Generated in stub mode"],
    }


class PlanGenerator:
    """Generates and validates plans. The backend is injected; tests pass a fake."""

    def __init__(
        self,
        backend: Optional[PlanBackend] = None,
        use_stub: Optional[bool] = None,
        timeout_ms: Optional[int] = None,
        max_assignment_length: Optional[int] = None,
    ):
        self.backend = backend or OpenAIPlanBackend()
        self.use_stub = settings.use_ai_stub if use_stub is None else use_stub
        self.timeout_ms = timeout_ms or settings.openai_timeout_ms
        self.max_assignment_length = max_assignment_length or settings.max_assignment_length

    @property
    def model_name(self) -> Optional[str]:
        if self.use_stub:
            return "stub"
        return getattr(self.backend, "model", None)

    async def generate_plan(self, plan_input: PlanInput, trace_id: Optional[str] = None) -> Plan:
        """
        Generate a plan for the given inputs.

        Raises:
            PlanError: with one of ASSIGNMENT_TOO_LONG, AI_CALL_FAILED, AI_TIMEOUT,
                AI_OUTPUT_INVALID or BUNDLE_COUNT_MISMATCH
        """
        assignment = plan_input.assignment_details or ""
        if len(assignment) > self.max_assignment_length:
            raise PlanError(
                PlanErrorCode.ASSIGNMENT_TOO_LONG,
                f"Assignment text exceeds {self.max_assignment_length} characters",
            )

        expected = expected_bundle_count(plan_input.group_size)

        if self.use_stub:
            logger.info(f"generatePlan: stub mode trace={trace_id} bundles={expected}")
            return self._validated(build_stub_plan(plan_input.timeframe, plan_input.group_size), expected)

        if not self.backend.configured:
            raise PlanError(PlanErrorCode.AI_CALL_FAILED, "Missing OPENAI_API_KEY")

        prompt = build_prompt(
            title=plan_input.title,
            description=plan_input.description,
            timeframe=plan_input.timeframe,
            assignment_details=assignment,
            group_size=plan_input.group_size,
        )
        logger.info(
            f"generatePlan: trace={trace_id} titleLen={len(plan_input.title or '')} "
            f"descriptionLen={len(plan_input.description or '')} assignmentLen={len(assignment)} "
            f"group_size={plan_input.group_size} model={self.model_name}"
        )
        logger.debug(f"generatePlan: prompt_preview {prompt[:1000]}")

        response = await self._call_backend(prompt, trace_id)

        candidate = extract_plan_json(response)
        if candidate is None:
            raise PlanError(PlanErrorCode.AI_OUTPUT_INVALID, "Unable to parse AI output as JSON")

        return self._validated(candidate, expected)

    async def _call_backend(self, prompt: str, trace_id: Optional[str]) -> Any:
        timeout_s = self.timeout_ms / 1000
        try:
            return await asyncio.wait_for(self.backend.complete(prompt, plan_json_schema()), timeout=timeout_s)
        except (asyncio.TimeoutError, APITimeoutError):
            logger.warning(f"generatePlan: timed out after {timeout_s:.0f}s trace={trace_id}")
            raise PlanError(PlanErrorCode.AI_TIMEOUT, f"OpenAI request timed out after {timeout_s:.0f}s")
        except APIStatusError as e:
            body = e.response.text if e.response is not None else str(e)
            logger.error(f"generatePlan: backend error status={e.status_code} trace={trace_id}")
            raise PlanError(PlanErrorCode.AI_CALL_FAILED, f"OpenAI error: {e.status_code} {body}")
        except PlanError:
            raise
        except Exception as e:
            logger.error(f"generatePlan: backend call failed trace={trace_id}: {e}", exc_info=True)
            raise PlanError(PlanErrorCode.AI_CALL_FAILED, str(e) or type(e).__name__)

    def _validated(self, candidate: Any, expected: int) -> Plan:
        result = validate_plan(candidate, expected)
        if result.ok:
            for warning in result.warnings:
                logger.warning(f"generatePlan: advisory: {warning}")
            return result.plan

        details = [issue.model_dump() for issue in result.issues]
        if result.has_only("bundle_count"):
            raise PlanError(PlanErrorCode.BUNDLE_COUNT_MISMATCH, result.summary(), details=details)
        raise PlanError(PlanErrorCode.AI_OUTPUT_INVALID, f"Validation failed: {result.summary()}", details=details)


# Singleton instance
_plan_generator: Optional[PlanGenerator] = None


def get_plan_generator() -> PlanGenerator:
    """Get the plan generator singleton."""
    global _plan_generator
    if _plan_generator is None:
        _plan_generator = PlanGenerator()
    return _plan_generator
