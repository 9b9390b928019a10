"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict

from vaultpilot.models.llm import FunctionDefinition, ToolDeclaration
from vaultpilot.services.vault import Vault

ToolHandler = Callable[[Any, Vault], Awaitable[str]]


class ToolInput(BaseModel):
    """Base class for tool argument schemas.

    Fields use snake_case in Python and the model-facing camelCase names as aliases.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


@dataclass
class ToolDefinition:
    """Definition of a tool available to the AI assistant."""

    name: str
    description: str
    input_schema_class: type[ToolInput]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        return self.input_schema_class.model_json_schema(by_alias=True)

    def parse_input(self, raw_input: dict[str, Any]) -> ToolInput:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    def to_declaration(self) -> ToolDeclaration:
        """Declaration advertised to the model."""
        return ToolDeclaration(
            function=FunctionDefinition(
                name=self.name,
                description=self.description,
                parameters=self.get_json_schema(),
            )
        )
