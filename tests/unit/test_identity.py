"""
Tests for bearer token parsing and the remote identity lookup (services/identity.py).

The identity service is replaced by an httpx MockTransport.
"""

import httpx
import pytest
from unittest.mock import patch

from grouper.services.exceptions import AuthenticationError
from grouper.services.identity import RemoteIdentityProvider, parse_bearer_token

REAL_ASYNC_CLIENT = httpx.AsyncClient


def serve(handler):
    """Patch httpx.AsyncClient so every request goes to handler."""
    def _client(**kwargs):
        return REAL_ASYNC_CLIENT(transport=httpx.MockTransport(handler), **kwargs)
    return patch("grouper.services.identity.httpx.AsyncClient", side_effect=_client)


@pytest.fixture
def provider():
    return RemoteIdentityProvider(base_url="https://id.example.com/auth/v1/", api_key="anon-key")


class TestParseBearerToken:

    def test_extracts_token(self):
        assert parse_bearer_token("Bearer abc.def") == "abc.def"
        assert parse_bearer_token("bearer   abc ") == "abc"

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer", "Bearer   "])
    def test_rejects_missing_or_malformed(self, header):
        with pytest.raises(AuthenticationError, match="Auth required"):
            parse_bearer_token(header)


class TestRemoteIdentityProvider:

    @pytest.mark.asyncio
    async def test_resolves_user(self, provider):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            return httpx.Response(200, json={"id": "user-9", "email": "nine@example.com"})

        with serve(handler):
            caller = await provider.resolve("tok")

        assert caller.user_id == "user-9"
        assert caller.email == "nine@example.com"
        assert seen["url"] == "https://id.example.com/auth/v1/user"
        assert seen["headers"]["authorization"] == "Bearer tok"
        assert seen["headers"]["apikey"] == "anon-key"

    @pytest.mark.asyncio
    async def test_rejected_token(self, provider):
        with serve(lambda request: httpx.Response(401, json={"msg": "bad jwt"})):
            with pytest.raises(AuthenticationError, match="Invalid auth token"):
                await provider.resolve("tok")

    @pytest.mark.asyncio
    async def test_non_json_body_is_unauthorized(self, provider):
        with serve(lambda request: httpx.Response(200, text="<html>gateway</html>")):
            with pytest.raises(AuthenticationError, match="Invalid auth token"):
                await provider.resolve("tok")

    @pytest.mark.asyncio
    async def test_missing_user_id(self, provider):
        with serve(lambda request: httpx.Response(200, json={"email": "x@example.com"})):
            with pytest.raises(AuthenticationError):
                await provider.resolve("tok")

    @pytest.mark.asyncio
    async def test_transport_error(self, provider):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with serve(handler):
            with pytest.raises(AuthenticationError, match="Invalid auth token"):
                await provider.resolve("tok")

    @pytest.mark.asyncio
    async def test_unconfigured_service(self):
        with pytest.raises(AuthenticationError, match="not configured"):
            await RemoteIdentityProvider(base_url="", api_key="").resolve("tok")
