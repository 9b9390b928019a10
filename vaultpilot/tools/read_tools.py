"""Read-only vault tools: listing, reading, searching and the active file."""

from pydantic import Field

from vaultpilot.services.vault import Vault
from vaultpilot.tools.base import ToolDefinition, ToolInput


class ListFilesInput(ToolInput):
    """Input schema for listing vault entries."""

    path: str = Field(default="", description='Folder path to list. Use "/" or empty string for vault root.')
    recursive: bool = Field(default=False, description="If true, list all files recursively. Default false.")


class ReadFileInput(ToolInput):
    """Input schema for reading a file."""

    path: str = Field(..., description='File path relative to vault root, e.g. "folder/note.md"')


class SearchInput(ToolInput):
    """Input schema for searching the vault."""

    query: str = Field(..., min_length=1, description="Text to search for (case-insensitive).")
    path: str = Field(default="", description="Optional folder path to limit search scope. Defaults to vault root.")
    max_results: int = Field(
        default=20,
        ge=1,
        alias="maxResults",
        description="Maximum number of matching files to return. Default 20.",
    )


class EmptyInput(ToolInput):
    """Input schema for tools that take no parameters."""


def create_list_files_tool() -> ToolDefinition:
    async def list_files_handler(params: ListFilesInput, vault: Vault) -> str:
        return vault.list_files(params.path, params.recursive)

    return ToolDefinition(
        name="vault_list_files",
        description=(
            "List files and folders in the Obsidian vault. Can list from root or a specific folder path. "
            "Returns file paths with sizes."
        ),
        input_schema_class=ListFilesInput,
        handler=list_files_handler,
    )


def create_read_file_tool() -> ToolDefinition:
    async def read_file_handler(params: ReadFileInput, vault: Vault) -> str:
        return vault.read_file(params.path)

    return ToolDefinition(
        name="vault_read_file",
        description="Read the full content of a file in the vault. Returns the text content of the file.",
        input_schema_class=ReadFileInput,
        handler=read_file_handler,
    )


def create_search_tool() -> ToolDefinition:
    async def search_handler(params: SearchInput, vault: Vault) -> str:
        return vault.search(params.query, params.path, params.max_results)

    return ToolDefinition(
        name="vault_search",
        description=(
            "Search for files containing specific text in the vault. "
            "Returns file paths and matching line excerpts."
        ),
        input_schema_class=SearchInput,
        handler=search_handler,
    )


def create_get_active_file_tool() -> ToolDefinition:
    async def get_active_file_handler(params: EmptyInput, vault: Vault) -> str:
        return vault.get_active_file()

    return ToolDefinition(
        name="vault_get_active_file",
        description="Get the path and content of the currently active (open) file in Obsidian.",
        input_schema_class=EmptyInput,
        handler=get_active_file_handler,
    )
