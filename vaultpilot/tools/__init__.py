"""Vault tools for the conversational AI assistant."""

from vaultpilot.tools.registry import VAULT_TOOL_NAMES, ToolsRegistry

__all__ = ["VAULT_TOOL_NAMES", "ToolsRegistry"]
