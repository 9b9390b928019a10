"""Tools registry for managing vault tools."""

from typing import Any

from vaultpilot.exceptions import ToolExecutionError
from vaultpilot.models.llm import ToolDeclaration
from vaultpilot.services.vault import Vault
from vaultpilot.tools.base import ToolDefinition
from vaultpilot.tools.manage_tools import create_create_folder_tool, create_delete_file_tool, create_rename_file_tool
from vaultpilot.tools.read_tools import (
    create_get_active_file_tool,
    create_list_files_tool,
    create_read_file_tool,
    create_search_tool,
)
from vaultpilot.tools.write_tools import (
    create_append_to_file_tool,
    create_edit_file_tool,
    create_insert_at_line_tool,
    create_write_file_tool,
)
from vaultpilot.utils.logging import get_logger

logger = get_logger(__name__)

# Declaration order is the order advertised to the model.
VAULT_TOOL_NAMES: tuple[str, ...] = (
    "vault_list_files",
    "vault_read_file",
    "vault_write_file",
    "vault_edit_file",
    "vault_search",
    "vault_delete_file",
    "vault_rename_file",
    "vault_create_folder",
    "vault_get_active_file",
    "vault_append_to_file",
    "vault_insert_at_line",
)


def default_vault_tools() -> list[ToolDefinition]:
    """Build the standard vault tool set."""
    return [
        create_list_files_tool(),
        create_read_file_tool(),
        create_write_file_tool(),
        create_edit_file_tool(),
        create_search_tool(),
        create_delete_file_tool(),
        create_rename_file_tool(),
        create_create_folder_tool(),
        create_get_active_file_tool(),
        create_append_to_file_tool(),
        create_insert_at_line_tool(),
    ]


class ToolsRegistry:
    """Registry for managing AI assistant tools bound to one vault."""

    def __init__(
        self,
        vault: Vault,
        tools: list[ToolDefinition] | None = None,
        declared_names: tuple[str, ...] | None = VAULT_TOOL_NAMES,
    ):
        """Initialize the registry and check every declared tool has exactly one handler.

        Args:
            vault: Document store the tools operate on
            tools: Tool definitions, defaults to the vault tool set
            declared_names: Names that must be registered; None skips the check

        Raises:
            ValueError: If a tool is registered twice or declared names and handlers differ
        """
        self.vault = vault
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools if tools is not None else default_vault_tools():
            self.register_tool(tool)

        if declared_names is not None:
            self._validate(declared_names)

    def _validate(self, declared_names: tuple[str, ...]) -> None:
        missing = [name for name in declared_names if name not in self._tools]
        undeclared = [name for name in self._tools if name not in declared_names]
        if missing or undeclared:
            raise ValueError(f"Tool registry mismatch: missing handlers {missing}, undeclared tools {undeclared}")

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get_tool_declarations(self) -> list[ToolDeclaration]:
        """Get the declarations advertised to the model."""
        return [tool.to_declaration() for tool in self._tools.values()]

    async def execute(self, name: str, args: dict[str, Any]) -> str:
        """Dispatch a tool call by name.

        Raises:
            ToolExecutionError: If the tool is unknown
            pydantic.ValidationError: If required arguments are missing or invalid
            VaultError: If the vault operation fails
        """
        if not self.has_tool(name):
            raise ToolExecutionError(f"Unknown tool: {name}")

        tool = self._tools[name]
        params = tool.parse_input(args)
        logger.debug(f"Executing tool {name} with {params.model_dump(by_alias=True)}")
        return await tool.handler(params, self.vault)

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools
