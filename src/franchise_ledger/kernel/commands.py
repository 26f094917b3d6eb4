"""
Base Command envelope

Commands represent intentions to change one aggregate. At the boundary
they arrive as a single JSON object; the envelope keeps the type apart
from the type-specific fields until validation has passed and the
envelope can be converted into a concrete per-type command model.
"""

from typing import Any

from pydantic import BaseModel, Field


class Command(BaseModel):
    """
    Command envelope - type plus raw field map

    Commands are:
    - Validated before anything else happens
    - Ephemeral (created per request, never stored)
    - Converted to events by the decision engine
    """

    type: str = Field(
        ...,
        description="Type of command: 'CreateFranchise', 'AddBranch', etc.",
    )

    fields: dict[str, Any] = Field(
        default_factory=dict,
        description="Type-specific parameters, keyed by their wire names",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "type": "AddBranch",
                    "fields": {
                        "franchiseId": "STB1",
                        "branchId": "BR1",
                        "branchName": "Downtown",
                    },
                }
            ]
        }
    }

    def get(self, name: str, default: Any = None) -> Any:
        """Field value or default when absent"""
        return self.fields.get(name, default)

    def to_wire(self) -> dict[str, Any]:
        """Flatten back into the inbound JSON shape"""
        return {"type": self.type, **self.fields}


def create_command(payload: dict[str, Any]) -> Command:
    """
    Build a command envelope from an inbound JSON object

    The ``type`` key is lifted out; every other key becomes a field.
    A missing type becomes an empty string, which the validator rejects
    as an unknown type.
    """
    fields = dict(payload)
    command_type = fields.pop("type", "")
    return Command(type=str(command_type) if command_type is not None else "", fields=fields)
