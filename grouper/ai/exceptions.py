"""Typed failures raised by plan generation."""

from enum import Enum
from typing import Any, List, Optional


class PlanErrorCode(str, Enum):
    ASSIGNMENT_TOO_LONG = "ASSIGNMENT_TOO_LONG"      # caller's input, not retried
    AI_CALL_FAILED = "AI_CALL_FAILED"                # transport, backend status, credentials
    AI_TIMEOUT = "AI_TIMEOUT"                        # bounded wait elapsed
    AI_OUTPUT_INVALID = "AI_OUTPUT_INVALID"          # unparseable or schema failure
    BUNDLE_COUNT_MISMATCH = "BUNDLE_COUNT_MISMATCH"  # wrong number of bundles
    GENERATE_OR_PERSIST_FAILED = "GENERATE_OR_PERSIST_FAILED"


class PlanError(Exception):
    """A generation failure with a code from the closed PlanErrorCode set."""

    def __init__(self, code: PlanErrorCode, message: str, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.code = PlanErrorCode(code)
        self.message = message
        self.details = details or []

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"
