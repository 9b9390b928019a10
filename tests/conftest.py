"""Shared fixtures for the test suite."""

import pytest

from vaultpilot.models.auth import AuthState, ModelOption
from vaultpilot.services.vault import FileSystemVault


@pytest.fixture
def vault_dir(tmp_path):
    """A small vault: notes/ folder and a 1.2 KB readme."""
    (tmp_path / "notes").mkdir()
    (tmp_path / "notes" / "meeting.md").write_text("# Meeting\nDiscuss the roadmap.\nAction items", encoding="utf-8")
    (tmp_path / "readme.md").write_text("r" * 1229, encoding="utf-8")
    return tmp_path


@pytest.fixture
def vault(vault_dir):
    """FileSystemVault over the sample vault."""
    return FileSystemVault(vault_dir)


@pytest.fixture
def auth_state():
    """Signed-in auth state."""
    return AuthState(pat="gho_test")


@pytest.fixture
def model():
    """Model used by engine runs."""
    return ModelOption(label="GPT-4o", value="gpt-4o")
