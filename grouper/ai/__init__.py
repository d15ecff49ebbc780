from .exceptions import PlanError, PlanErrorCode
from .prompts import PROMPT_VERSION, build_prompt
from .response_parsing import extract_plan_json, EXTRACTION_STRATEGIES
from .planner import (
    PlanInput,
    PlanBackend,
    OpenAIPlanBackend,
    PlanGenerator,
    build_stub_plan,
    get_plan_generator,
)

__all__ = [
    "PlanError",
    "PlanErrorCode",
    "PROMPT_VERSION",
    "build_prompt",
    "extract_plan_json",
    "EXTRACTION_STRATEGIES",
    "PlanInput",
    "PlanBackend",
    "OpenAIPlanBackend",
    "PlanGenerator",
    "build_stub_plan",
    "get_plan_generator",
]
