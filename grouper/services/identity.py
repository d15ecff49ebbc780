"""
Caller identity.

Bearer tokens are verified by an external identity service; this module only
asks it who the token belongs to.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from config import settings
from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str
    email: Optional[str] = None


class IdentityProvider(Protocol):
    async def resolve(self, token: str) -> CallerIdentity:
        ...


def parse_bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an Authorization header, or raise AuthenticationError."""
    if not authorization:
        raise AuthenticationError("Auth required")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Auth required")
    return token.strip()


class RemoteIdentityProvider:
    """Resolves tokens with the identity service's /user endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.base_url = (base_url or settings.identity_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.identity_api_key
        self.timeout = timeout

    async def resolve(self, token: str) -> CallerIdentity:
        if not self.base_url:
            logger.error("IDENTITY_URL not configured; rejecting request")
            raise AuthenticationError("Identity service not configured")

        headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            headers["apikey"] = self.api_key

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}/user", headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Identity lookup failed: {e}")
            raise AuthenticationError("Invalid auth token")

        if response.status_code != 200:
            logger.warning(f"Identity service rejected token: {response.status_code}")
            raise AuthenticationError("Invalid auth token")

        try:
            data = response.json()
        except ValueError:
            logger.warning("Identity service returned a non-JSON body")
            raise AuthenticationError("Invalid auth token")

        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            raise AuthenticationError("Invalid auth token")

        logger.debug(f"auth ok user_id={user_id}")
        return CallerIdentity(user_id=str(user_id), email=data.get("email"))


# Singleton instance
_identity_provider: Optional[IdentityProvider] = None


def get_identity_provider() -> IdentityProvider:
    """Get the identity provider singleton."""
    global _identity_provider
    if _identity_provider is None:
        _identity_provider = RemoteIdentityProvider()
    return _identity_provider
