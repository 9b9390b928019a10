"""Tests for data models."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from vaultpilot.config import load_settings
from vaultpilot.models.auth import AVAILABLE_MODELS, DEFAULT_MODEL, AuthState
from vaultpilot.models.conversation import ConversationRequest, ConversationResponse, HealthResponse
from vaultpilot.models.llm import ChatCompletionRequest, CompletionResult
from vaultpilot.models.messages import ChatMessage, ConversationMessage, ToolCallOutcome
from vaultpilot.models.session import Session
from vaultpilot.services.session_manager import InMemorySessionManager
from vaultpilot.tools.read_tools import SearchInput
from vaultpilot.tools.write_tools import EditFileInput, InsertAtLineInput


class TestConversationModels:
    """Tests for conversation request/response models."""

    def test_conversation_request_valid(self):
        """Test valid conversation request."""
        request = ConversationRequest(message="Hello")
        assert request.message == "Hello"
        assert request.session_id is None
        assert request.active_file is None

    def test_conversation_request_from_json(self):
        """Test conversation request parsing from JSON."""
        json_data = '{"message": "Summarize this", "session_id": "clhqxrisp0001s67w2qccjhqr", "active_file": "a.md"}'
        request = ConversationRequest.model_validate(json.loads(json_data))
        assert request.session_id == "clhqxrisp0001s67w2qccjhqr"
        assert request.active_file == "a.md"

    def test_conversation_response_defaults(self):
        """Test conversation response defaults to no messages or errors."""
        response = ConversationResponse(response="Hi there!", session_id="test-session")
        assert response.messages == []
        assert response.errors == []

    def test_health_response_valid(self):
        """Test valid health response."""
        now = datetime.now(UTC)
        response = HealthResponse(status="healthy", timestamp=now, version="1.0.0")
        assert response.status == "healthy"
        assert response.timestamp == now


class TestMessageModels:
    """Tests for conversation and wire message models."""

    def test_conversation_message_defaults(self):
        """Test ids are generated and lists default to empty."""
        first = ConversationMessage(role="user", content="Hi")
        second = ConversationMessage(role="user", content="Hi")
        assert first.id != second.id
        assert first.tool_calls == []
        assert first.tool_results == []
        assert first.timestamp.tzinfo is not None

    def test_invalid_role(self):
        """Test an unknown role is rejected."""
        with pytest.raises(ValidationError):
            ConversationMessage(role="robot", content="beep")

    def test_chat_message_payload_keeps_null_content(self):
        """Test null content is serialized rather than dropped."""
        assert ChatMessage(role="assistant", content=None).to_payload() == {"role": "assistant", "content": None}

    def test_outcome_terminal_states(self):
        """Test which statuses are terminal."""
        outcome = ToolCallOutcome(tool_call_id="c", tool_name="vault_read_file")
        assert outcome.status == "pending"
        assert not outcome.is_terminal
        outcome.status = "error"
        assert outcome.is_terminal

    def test_completion_request_defaults(self):
        """Test the fixed request parameters."""
        payload = ChatCompletionRequest(model="gpt-4o", messages=[]).to_payload()
        assert payload == {
            "intent": False,
            "model": "gpt-4o",
            "temperature": 0,
            "top_p": 1,
            "n": 1,
            "stream": True,
            "messages": [],
        }

    @pytest.mark.parametrize(("reason", "expected"), [("tool_calls", True), ("function_call", True), ("stop", False)])
    def test_completion_result_continuation(self, reason, expected):
        """Test only tool_calls and function_call continue the loop."""
        assert CompletionResult(finish_reason=reason).wants_more is expected


class TestToolInputModels:
    """Tests for tool argument schemas."""

    def test_edit_input_accepts_aliases(self):
        """Test camelCase argument names populate snake_case fields."""
        params = EditFileInput.model_validate({"path": "a.md", "oldText": "x", "newText": "y"})
        assert params.old_text == "x"
        assert params.new_text == "y"

    def test_edit_input_requires_old_text(self):
        """Test an empty oldText is rejected."""
        with pytest.raises(ValidationError):
            EditFileInput.model_validate({"path": "a.md", "oldText": "", "newText": "y"})

    def test_insert_line_must_be_positive(self):
        """Test line numbers start at 1."""
        with pytest.raises(ValidationError):
            InsertAtLineInput.model_validate({"path": "a.md", "line": 0, "content": "x"})

    def test_search_defaults(self):
        """Test search defaults and extra fields."""
        params = SearchInput.model_validate({"query": "todo", "unexpected": True})
        assert params.max_results == 20
        assert params.path == ""


class TestAuthModels:
    """Tests for authentication state."""

    def test_default_model(self):
        """Test gpt-4o is the default model and listed."""
        assert DEFAULT_MODEL.value == "gpt-4o"
        assert DEFAULT_MODEL in AVAILABLE_MODELS

    def test_is_authenticated_follows_pat(self):
        """Test a PAT marks the state as signed in."""
        assert not AuthState().is_authenticated
        assert AuthState(pat="gho_x").is_authenticated


class TestSession:
    """Tests for sessions and the session manager."""

    def test_session_as_dict(self):
        """Test the session summary fields."""
        data = Session(session_id="s1").as_dict()
        assert data["session_id"] == "s1"
        assert data["messages"] == 0
        assert data["running"] is False

    def test_cancel_without_run(self):
        """Test cancelling an idle session reports nothing to cancel."""
        assert Session(session_id="s1").cancel_run() is False

    def test_manager_creates_cuid_sessions(self):
        """Test new sessions get generated ids and can be found again."""
        manager = InMemorySessionManager()
        session = manager.get_or_create_session()
        assert len(session.session_id) > 0
        assert manager.get_session(session.session_id) is session
        assert manager.get_session_count() == 1

    def test_manager_expires_idle_sessions(self):
        """Test sessions idle past the timeout are removed."""
        manager = InMemorySessionManager(session_timeout_minutes=1)
        session = manager.get_or_create_session()
        session.last_activity = datetime.now(UTC) - timedelta(minutes=5)
        assert manager.get_session(session.session_id) is None

    def test_manager_delete(self):
        """Test deleting a session."""
        manager = InMemorySessionManager()
        session = manager.get_or_create_session()
        assert manager.delete_session(session.session_id) is True
        assert manager.delete_session(session.session_id) is False


class TestSettings:
    """Tests for environment settings."""

    def test_defaults(self, monkeypatch):
        """Test defaults when no variables are set."""
        for name in ("VAULTPILOT_MODEL", "VAULTPILOT_MAX_ITERATIONS", "VAULTPILOT_ENABLE_TOOLS", "GITHUB_COPILOT_PAT"):
            monkeypatch.delenv(name, raising=False)
        settings = load_settings()
        assert settings.model.value == "gpt-4o"
        assert settings.max_iterations == 5
        assert settings.enable_tools is True
        assert settings.github_pat is None

    def test_overrides(self, monkeypatch):
        """Test variables override the defaults."""
        monkeypatch.setenv("VAULTPILOT_MODEL", "claude-sonnet-4")
        monkeypatch.setenv("VAULTPILOT_MAX_ITERATIONS", "8")
        monkeypatch.setenv("VAULTPILOT_ENABLE_TOOLS", "false")
        settings = load_settings()
        assert settings.model.value == "claude-sonnet-4"
        assert settings.max_iterations == 8
        assert settings.enable_tools is False
