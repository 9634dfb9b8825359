"""Action input fields and their JSON Schema form."""

from __future__ import annotations

from typing import Any

InputField = dict[str, Any]


def fields_to_json_schema(fields: dict[str, InputField] | None = None) -> dict[str, Any]:
    """Convert field declarations into an object schema.

    Each field is a JSON Schema property plus an optional ``required`` flag;
    the flags are lifted into the schema's ``required`` list.

    Example::

        fields_to_json_schema({"text": {"type": "string", "required": True}})
        # {"$schema": ..., "type": "object", "additionalProperties": False,
        #  "properties": {"text": {"type": "string"}}, "required": ["text"]}
    """
    fields = fields or {}
    return {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "type": "object",
        "additionalProperties": False,
        "properties": {
            name: {k: v for k, v in field.items() if k != "required"} for name, field in fields.items()
        },
        "required": [name for name, field in fields.items() if field.get("required")],
    }


__all__ = ["InputField", "fields_to_json_schema"]
