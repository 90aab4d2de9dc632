"""Integration tests for the authentication flow."""

from __future__ import annotations

import os
from unittest.mock import AsyncMock, MagicMock, patch

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from merchant_copilot.models.document import AssistantResponse


@pytest.fixture
def env_vars() -> dict[str, str]:
    return {
        "AZURE_OPENAI_ENDPOINT": "https://test.openai.azure.com/",
        "COSMOS_ENDPOINT": "https://test.documents.azure.com:443/",
        "AUTH_AUDIENCE": "merchant-copilot",
    }


def _token(**claims) -> str:
    return jwt.encode(claims, "k" * 32, algorithm="HS256")


def _stub_assistant() -> MagicMock:
    assistant = MagicMock()
    assistant.answer = AsyncMock(return_value=AssistantResponse(message="ok"))
    return assistant


class TestAuthFlow:
    """Integration tests for bearer token authentication."""

    @pytest.mark.asyncio
    async def test_unauthenticated_request_returns_401(self, env_vars: dict[str, str]) -> None:
        """Request without Authorization header should return 401."""
        with patch.dict(os.environ, env_vars, clear=False):
            from merchant_copilot.main import create_app

            app = create_app()
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                resp = await client.post("/chat", json={"message": "test question"})
                assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_empty_bearer_returns_401(self, env_vars: dict[str, str]) -> None:
        """Request with empty Bearer token should return 401."""
        with patch.dict(os.environ, env_vars, clear=False):
            from merchant_copilot.main import create_app

            app = create_app()
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                resp = await client.post(
                    "/chat",
                    json={"message": "test question"},
                    headers={"Authorization": "Bearer "},
                )
                assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token_format_returns_401(self, env_vars: dict[str, str]) -> None:
        """Request with non-Bearer auth should return 401."""
        with patch.dict(os.environ, env_vars, clear=False):
            from merchant_copilot.main import create_app

            app = create_app()
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                resp = await client.post(
                    "/chat",
                    json={"message": "test question"},
                    headers={"Authorization": "Basic dXNlcjpwYXNz"},
                )
                assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_audience_returns_401(self, env_vars: dict[str, str]) -> None:
        with patch.dict(os.environ, env_vars, clear=False):
            from merchant_copilot.main import create_app

            app = create_app()
            app.state.assistant = _stub_assistant()
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                resp = await client.post(
                    "/chat",
                    json={"message": "test question"},
                    headers={"Authorization": f"Bearer {_token(sub='rep-1', aud='other-app')}"},
                )
                assert resp.status_code == 401
                app.state.assistant.answer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_valid_token_reaches_assistant(self, env_vars: dict[str, str]) -> None:
        with patch.dict(os.environ, env_vars, clear=False):
            from merchant_copilot.main import create_app

            app = create_app()
            app.state.assistant = _stub_assistant()
            token = _token(oid="rep-42", name="Sam", aud="merchant-copilot")
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                resp = await client.post(
                    "/chat",
                    json={"message": "test question"},
                    headers={"Authorization": f"Bearer {token}"},
                )
                assert resp.status_code == 200
                assert resp.json()["message"] == "ok"
                assert app.state.assistant.answer.call_args.kwargs["user_id"] == "rep-42"
