"""HTTP request and response models."""

from datetime import datetime

from pydantic import BaseModel, Field

from vaultpilot.models.messages import ConversationMessage


class ConversationRequest(BaseModel):
    """Request model for conversation endpoint."""

    message: str
    session_id: str | None = None
    active_file: str | None = None


class ConversationResponse(BaseModel):
    """Response model for conversation endpoint."""

    response: str
    session_id: str
    messages: list[ConversationMessage] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class CancelResponse(BaseModel):
    """Response model for run cancellation."""

    session_id: str
    cancelled: bool


class DevicePollRequest(BaseModel):
    """Request model for polling the device login flow."""

    device_code: str


class DevicePollResponse(BaseModel):
    """Response model for a device login poll."""

    authenticated: bool
    error: str | None = None


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
    active_sessions: int
