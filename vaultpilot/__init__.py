"""Copilot-driven chat agent for Markdown vaults."""

__version__ = "0.1.0"
