"""Service settings read from the environment."""

import os

from pydantic import BaseModel, Field

from vaultpilot.models.auth import DEFAULT_MODEL, ModelOption


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime settings for the conversation service."""

    vault_path: str = "."
    model: ModelOption = Field(default_factory=lambda: DEFAULT_MODEL.model_copy())
    system_prompt: str = ""
    max_iterations: int = Field(default=5, ge=0)
    enable_tools: bool = True
    requests_per_minute: int = Field(default=60, gt=0)
    github_pat: str | None = None
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build settings from VAULTPILOT_* environment variables."""
    model_id = os.getenv("VAULTPILOT_MODEL")
    model = ModelOption(label=model_id, value=model_id) if model_id else DEFAULT_MODEL.model_copy()

    return Settings(
        vault_path=os.getenv("VAULTPILOT_VAULT_PATH", "."),
        model=model,
        system_prompt=os.getenv("VAULTPILOT_SYSTEM_PROMPT", ""),
        max_iterations=int(os.getenv("VAULTPILOT_MAX_ITERATIONS", "5")),
        enable_tools=_env_bool("VAULTPILOT_ENABLE_TOOLS", True),
        requests_per_minute=int(os.getenv("VAULTPILOT_REQUESTS_PER_MINUTE", "60")),
        github_pat=os.getenv("GITHUB_COPILOT_PAT") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
