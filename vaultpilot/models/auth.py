"""GitHub / Copilot authentication models."""

from typing import Any

from pydantic import BaseModel, Field

COPILOT_CLIENT_ID = "Ov23liclmrr3b8tQdNjK"


class DeviceCodeResponse(BaseModel):
    """Response from the GitHub device-code endpoint."""

    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int
    interval: int = 5


class PATResponse(BaseModel):
    """Response from the OAuth access-token endpoint while polling the device flow."""

    access_token: str | None = None
    token_type: str | None = None
    scope: str | None = None
    error: str | None = None
    error_description: str | None = None

    class Config:
        extra = "ignore"


class TokenResponse(BaseModel):
    """Short-lived Copilot token minted from a PAT."""

    token: str
    expires_at: int
    refresh_in: int | None = None
    chat_enabled: bool | None = None
    endpoints: dict[str, str] = Field(default_factory=dict)

    class Config:
        extra = "ignore"


class AccessToken(BaseModel):
    """Cached Copilot access token."""

    token: str | None = None
    expires_at: int | None = None  # seconds since the epoch


class AuthState(BaseModel):
    """Authentication state shared by every conversation run."""

    device_code: str | None = None
    pat: str | None = None
    access_token: AccessToken = Field(default_factory=AccessToken)

    @property
    def is_authenticated(self) -> bool:
        """Whether a long-lived credential is on file."""
        return bool(self.pat)

    def apply_update(self, update: dict[str, Any]) -> None:
        """Merge a partial update such as ``{"access_token": {...}}`` into this state."""
        for key, value in update.items():
            if key == "access_token":
                value = value if isinstance(value, AccessToken) else AccessToken.model_validate(value)
            elif key not in ("device_code", "pat"):
                raise ValueError(f"Unknown auth state field: {key}")
            setattr(self, key, value)


class ModelOption(BaseModel):
    """A selectable chat model."""

    label: str
    value: str


AVAILABLE_MODELS: list[ModelOption] = [
    ModelOption(label="GPT-4o", value="gpt-4o"),
    ModelOption(label="GPT-4o Mini", value="gpt-4o-mini"),
    ModelOption(label="GPT-4.1", value="gpt-4.1-2025-04-14"),
    ModelOption(label="GPT-4.1 Mini", value="gpt-4.1-mini"),
    ModelOption(label="Claude Sonnet 4", value="claude-sonnet-4"),
    ModelOption(label="Claude Sonnet 4.5", value="claude-sonnet-4.5"),
    ModelOption(label="Claude Haiku 4.5", value="claude-haiku-4.5"),
    ModelOption(label="Gemini 2.5 Pro", value="gemini-2.5-pro"),
    ModelOption(label="o3 Mini", value="o3-mini"),
    ModelOption(label="o4 Mini", value="o4-mini"),
]

DEFAULT_MODEL = AVAILABLE_MODELS[0]
