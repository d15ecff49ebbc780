"""
Join code allocation.

Join codes are short, human-typeable project identifiers drawn from an
alphabet without the look-alike characters 0/O/1/I. A code collides when an
active project, or one soft-deleted within the reuse window, already holds it.
"""

import logging
import secrets
from typing import Optional

from config import settings
from ..database.repositories.projects import ProjectRepository, get_project_repository
from .exceptions import JoinCodeAllocationError

logger = logging.getLogger(__name__)

JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def random_code(length: int) -> str:
    """Generate a code of the given length with cryptographic randomness."""
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


class JoinCodeAllocator:
    """Finds a join code no live or recently deleted project holds."""

    def __init__(
        self,
        projects: Optional[ProjectRepository] = None,
        length: Optional[int] = None,
        max_attempts: Optional[int] = None,
        escalate_after: Optional[int] = None,
        fallback_length: Optional[int] = None,
        window_days: Optional[int] = None,
    ):
        self.projects = projects or get_project_repository()
        self.length = length or settings.join_code_length
        self.max_attempts = max_attempts or settings.join_code_max_attempts
        self.escalate_after = escalate_after or settings.join_code_escalate_after
        self.fallback_length = fallback_length or settings.join_code_fallback_length
        self.window_days = window_days or settings.join_code_reuse_window_days

    def _generate(self, length: int) -> str:
        return random_code(length)

    async def _is_free(self, code: str) -> bool:
        return not await self.projects.join_code_in_use(code, self.window_days)

    async def allocate(self) -> str:
        """
        Allocate a collision-free join code.

        Tries max_attempts codes, one character longer once escalate_after
        collisions have been seen, then falls back to fallback_length codes.

        Raises:
            JoinCodeAllocationError: if every fallback code collides too
        """
        for attempt in range(self.max_attempts):
            length = self.length + 1 if attempt >= self.escalate_after else self.length
            code = self._generate(length)
            if await self._is_free(code):
                return code
            logger.info(f"Join code collision attempt={attempt} length={length}")

        for attempt in range(self.max_attempts):
            code = self._generate(self.fallback_length)
            if await self._is_free(code):
                logger.info(f"Join code allocated from fallback length={self.fallback_length}")
                return code
            logger.warning(f"Fallback join code collision attempt={attempt}")

        raise JoinCodeAllocationError(
            f"Could not allocate a join code after {self.max_attempts * 2} attempts"
        )
