"""Vault tools that move, delete or create entries."""

from pydantic import Field

from vaultpilot.services.vault import Vault
from vaultpilot.tools.base import ToolDefinition, ToolInput


class DeleteFileInput(ToolInput):
    """Input schema for moving a file to the trash."""

    path: str = Field(..., description="File path relative to vault root to delete.")


class RenameFileInput(ToolInput):
    """Input schema for renaming or moving a file."""

    old_path: str = Field(..., alias="oldPath", description="Current file path.")
    new_path: str = Field(..., alias="newPath", description="New file path.")


class CreateFolderInput(ToolInput):
    """Input schema for creating a folder."""

    path: str = Field(..., description='Folder path to create, e.g. "Projects/NewProject"')


def create_delete_file_tool() -> ToolDefinition:
    async def delete_file_handler(params: DeleteFileInput, vault: Vault) -> str:
        return vault.delete_file(params.path)

    return ToolDefinition(
        name="vault_delete_file",
        description="Delete a file from the vault. Moves the file to the vault trash.",
        input_schema_class=DeleteFileInput,
        handler=delete_file_handler,
    )


def create_rename_file_tool() -> ToolDefinition:
    async def rename_file_handler(params: RenameFileInput, vault: Vault) -> str:
        return vault.rename_file(params.old_path, params.new_path)

    return ToolDefinition(
        name="vault_rename_file",
        description="Rename or move a file within the vault.",
        input_schema_class=RenameFileInput,
        handler=rename_file_handler,
    )


def create_create_folder_tool() -> ToolDefinition:
    async def create_folder_handler(params: CreateFolderInput, vault: Vault) -> str:
        return vault.create_folder(params.path)

    return ToolDefinition(
        name="vault_create_folder",
        description="Create a new folder in the vault.",
        input_schema_class=CreateFolderInput,
        handler=create_folder_handler,
    )
