"""
Schemas for tool descriptors and the catalog view handed to the model.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class ToolDescriptor(BaseModel):
    """
    Static description of a tool. Immutable once the tool is registered.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, pattern=r"^[A-Za-z0-9_.\-]+$")
    description: str
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    requires_confirmation: bool = False
    timeout_ms: int = Field(60_000, ge=1)

    def to_spec(self) -> "ToolSpec":
        return ToolSpec(
            name=self.name, description=self.description, parameters=self.input_schema
        )


class ToolSpec(BaseModel):
    """The reduced view exposed in the generation call's tool catalog."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: Dict[str, Any]
