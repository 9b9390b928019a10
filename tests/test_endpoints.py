"""Tests for API endpoints."""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from tests.fakes import ScriptedTransport, StaticTokenProvider, make_tool_call
from vaultpilot.config import Settings
from vaultpilot.main import app
from vaultpilot.models.auth import DeviceCodeResponse, PATResponse
from vaultpilot.models.llm import CompletionResult
from vaultpilot.services.auth_store import AuthStore, get_auth_store
from vaultpilot.services.conversation import ConversationService, get_conversation_service
from vaultpilot.services.engine import ChatEngine
from vaultpilot.services.session_manager import InMemorySessionManager, get_session_manager
from vaultpilot.tools import ToolsRegistry

client = TestClient(app)


@pytest.fixture
def auth_store():
    """Auth store with a mocked GitHub client."""
    return AuthStore(auth_client=Mock(), pat="gho_test")


@pytest.fixture
def sessions():
    """Fresh session manager."""
    return InMemorySessionManager()


@pytest.fixture
def transport():
    """Scripted transport; tests append the rounds they need."""
    return ScriptedTransport([])


@pytest.fixture(autouse=True)
def overrides(vault, auth_store, sessions, transport):
    """Wire the app to test doubles."""
    engine = ChatEngine(transport, StaticTokenProvider(), ToolsRegistry(vault))
    service = ConversationService(Settings(), engine, vault, auth_store, copilot=Mock())

    app.dependency_overrides[get_conversation_service] = lambda: service
    app.dependency_overrides[get_session_manager] = lambda: sessions
    app.dependency_overrides[get_auth_store] = lambda: auth_store
    yield service
    app.dependency_overrides.clear()


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check_returns_200(self):
        """Test that health check returns 200 status."""
        response = client.get("/health")
        assert response.status_code == 200

    def test_health_check_response_structure(self):
        """Test that health check returns expected JSON structure."""
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert "timestamp" in data

    def test_health_check_counts_sessions(self, sessions):
        """Test that health check reports the number of live sessions."""
        assert client.get("/health").json()["active_sessions"] == 0

        sessions.get_or_create_session()

        assert client.get("/health").json()["active_sessions"] == 1

    def test_health_check_content_type(self):
        """Test that health check returns JSON content type."""
        response = client.get("/health")
        assert response.headers["content-type"] == "application/json"


class TestConversationEndpoint:
    """Tests for the conversation endpoint."""

    def test_conversation_runs_tools(self, transport):
        """Test a message that triggers a tool round returns every new message."""
        transport.script.extend(
            [
                CompletionResult(
                    tool_calls=[make_tool_call("call_1", "vault_list_files", {"path": "/"})],
                    finish_reason="tool_calls",
                ),
                CompletionResult(content="Your vault root contains a notes folder and a readme."),
            ]
        )

        response = client.post("/conversation", json={"message": "What is in my vault?"})

        assert response.status_code == 200
        data = response.json()
        assert data["response"] == "Your vault root contains a notes folder and a readme."
        assert data["errors"] == []
        assert [m["role"] for m in data["messages"]] == ["user", "assistant", "tool", "assistant"]
        assert data["messages"][1]["tool_results"][0]["status"] == "success"
        assert data["messages"][2]["content"] == "notes/\nreadme.md (1.2 KB)"
        assert len(data["session_id"]) > 0

    def test_conversation_reuses_session(self, transport, sessions):
        """Test a second message continues the same session."""
        transport.script.extend([CompletionResult(content="One"), CompletionResult(content="Two")])

        first = client.post("/conversation", json={"message": "Hi"}).json()
        second = client.post("/conversation", json={"message": "Again", "session_id": first["session_id"]}).json()

        assert second["session_id"] == first["session_id"]
        assert len(sessions.get_session(first["session_id"]).history) == 4

    def test_unknown_session_returns_404(self):
        """Test an unknown session ID is rejected."""
        response = client.post("/conversation", json={"message": "Hi", "session_id": "missing"})
        assert response.status_code == 404

    def test_empty_message_returns_400(self):
        """Test message validation errors map to 400."""
        response = client.post("/conversation", json={"message": "   "})
        assert response.status_code == 400

    def test_missing_active_file_returns_400(self):
        """Test an active file outside the vault is rejected."""
        response = client.post("/conversation", json={"message": "Hi", "active_file": "nope.md"})
        assert response.status_code == 400

    def test_cancel_idle_session(self, sessions):
        """Test cancelling a session with nothing running reports false."""
        session = sessions.get_or_create_session()

        response = client.post(f"/conversation/{session.session_id}/cancel")

        assert response.status_code == 200
        assert response.json() == {"session_id": session.session_id, "cancelled": False}

    def test_delete_session(self, sessions):
        """Test deleting a session and then deleting it again."""
        session = sessions.get_or_create_session()

        assert client.delete(f"/conversation/{session.session_id}").status_code == 204
        assert client.delete(f"/conversation/{session.session_id}").status_code == 404


class TestModelsEndpoint:
    """Tests for the models endpoint."""

    def test_lists_models(self, overrides):
        """Test models come from the conversation service."""
        overrides.copilot.fetch_models = AsyncMock(return_value=[])
        response = client.get("/models")

        assert response.status_code == 200
        assert response.json() == []


class TestAuthEndpoints:
    """Tests for device login and logout."""

    def test_start_device_login(self, auth_store):
        """Test the device code is returned and remembered."""
        auth_store.auth_client.fetch_device_code = AsyncMock(
            return_value=DeviceCodeResponse(
                device_code="dev",
                user_code="ABCD-1234",
                verification_uri="https://github.com/login/device",
                expires_in=900,
            )
        )

        response = client.post("/auth/device")

        assert response.status_code == 200
        assert response.json()["user_code"] == "ABCD-1234"
        assert auth_store.state.device_code == "dev"

    def test_poll_device_login(self, auth_store):
        """Test a completed poll reports authentication."""
        auth_store.auth_client.fetch_pat = AsyncMock(return_value=PATResponse(access_token="gho_new"))

        response = client.post("/auth/device/poll", json={"device_code": "dev"})

        assert response.json() == {"authenticated": True, "error": None}
        assert auth_store.state.pat == "gho_new"

    def test_logout(self, auth_store):
        """Test logout clears credentials."""
        assert client.post("/auth/logout").status_code == 204
        assert auth_store.state.pat is None
