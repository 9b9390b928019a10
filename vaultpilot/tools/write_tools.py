"""Vault tools that change file content."""

from pydantic import Field

from vaultpilot.services.vault import Vault
from vaultpilot.tools.base import ToolDefinition, ToolInput


class WriteFileInput(ToolInput):
    """Input schema for creating or overwriting a file."""

    path: str = Field(..., description='File path relative to vault root, e.g. "folder/new-note.md"')
    content: str = Field(..., description="The full content to write to the file.")


class EditFileInput(ToolInput):
    """Input schema for replacing an exact text span."""

    path: str = Field(..., description="File path relative to vault root.")
    old_text: str = Field(
        ..., min_length=1, alias="oldText", description="The exact text to find and replace. Must match exactly."
    )
    new_text: str = Field(..., alias="newText", description="The replacement text.")


class AppendToFileInput(ToolInput):
    """Input schema for appending to a file."""

    path: str = Field(..., description="File path relative to vault root.")
    content: str = Field(..., min_length=1, description="Content to append to the end of the file.")


class InsertAtLineInput(ToolInput):
    """Input schema for inserting before a line."""

    path: str = Field(..., description="File path relative to vault root.")
    line: int = Field(
        ..., ge=1, description="Line number to insert at (1-indexed). Content is inserted before this line."
    )
    content: str = Field(..., min_length=1, description="Content to insert.")


def create_write_file_tool() -> ToolDefinition:
    async def write_file_handler(params: WriteFileInput, vault: Vault) -> str:
        return vault.write_file(params.path, params.content)

    return ToolDefinition(
        name="vault_write_file",
        description=(
            "Create a new file or overwrite an existing file in the vault. "
            "Use this to create new notes or completely replace file content."
        ),
        input_schema_class=WriteFileInput,
        handler=write_file_handler,
    )


def create_edit_file_tool() -> ToolDefinition:
    async def edit_file_handler(params: EditFileInput, vault: Vault) -> str:
        return vault.edit_file(params.path, params.old_text, params.new_text)

    return ToolDefinition(
        name="vault_edit_file",
        description=(
            "Edit a file by replacing a specific text section with new text. Use this for targeted edits "
            "instead of rewriting the entire file. The oldText must be an exact match of existing content "
            "in the file."
        ),
        input_schema_class=EditFileInput,
        handler=edit_file_handler,
    )


def create_append_to_file_tool() -> ToolDefinition:
    async def append_to_file_handler(params: AppendToFileInput, vault: Vault) -> str:
        return vault.append_to_file(params.path, params.content)

    return ToolDefinition(
        name="vault_append_to_file",
        description=(
            "Append content to the end of an existing file. "
            "Useful for adding entries to logs, journals, or lists."
        ),
        input_schema_class=AppendToFileInput,
        handler=append_to_file_handler,
    )


def create_insert_at_line_tool() -> ToolDefinition:
    async def insert_at_line_handler(params: InsertAtLineInput, vault: Vault) -> str:
        return vault.insert_at_line(params.path, params.line, params.content)

    return ToolDefinition(
        name="vault_insert_at_line",
        description=(
            "Insert content at a specific line number in a file. Line numbers start at 1. "
            "Content is inserted before the specified line."
        ),
        input_schema_class=InsertAtLineInput,
        handler=insert_at_line_handler,
    )
