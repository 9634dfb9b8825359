"""JSON Schema validation with default filling and scalar coercion.

``compile_schema(schema)`` returns a :class:`SchemaValidator`. Calling it
first walks the data alongside the schema: missing properties that declare a
``default`` are filled in, and scalars whose type does not match the
declared ``type`` are coerced where a lossless conversion exists. Then the
data is checked with ``jsonschema``'s Draft 7 validator and every violation
is kept on ``.errors``.

Coercions (scalar only, arrays and objects are never coerced)::

    to string   number → "1.5", true → "true", null → ""
    to number   "1.5" → 1.5, true → 1, null → 0
    to integer  "3" → 3 (only when integral)
    to boolean  "true"/"false", 1/0, null → false
    to null     "", 0, false → null

Examples:
    >>> validate = compile_schema({"type": "object", "properties": {"n": {"type": "integer"}}})
    >>> data = {"n": "7"}
    >>> validate(data), data
    (True, {'n': 7})
"""

from __future__ import annotations

import copy
from typing import Any

from jsonschema import Draft7Validator

from relay.core.errors import FieldError

_NO_COERCION = object()


def _format_path(parts) -> str:
    path = "$"
    for part in parts:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "unknown"


def _matches(value: Any, type_name: str) -> bool:
    actual = _json_type(value)
    if type_name == "number":
        return actual in ("number", "integer")
    if type_name == "integer":
        return actual == "integer" or (actual == "number" and float(value).is_integer())
    return actual == type_name


def _coerce_to(value: Any, type_name: str) -> Any:
    actual = _json_type(value)

    if type_name == "string":
        if actual in ("number", "integer"):
            return str(value)
        if actual == "boolean":
            return "true" if value else "false"
        if actual == "null":
            return ""

    elif type_name in ("number", "integer"):
        if actual == "boolean":
            return int(value)
        if actual == "null":
            return 0
        if actual == "string" and value.strip():
            try:
                number = float(value)
            except ValueError:
                return _NO_COERCION
            if type_name == "integer":
                return int(number) if number.is_integer() else _NO_COERCION
            return int(number) if number.is_integer() and "." not in value else number

    elif type_name == "boolean":
        if value in ("true", "false"):
            return value == "true"
        if actual in ("number", "integer") and value in (0, 1):
            return bool(value)
        if actual == "null":
            return False

    elif type_name == "null":
        if value == "" or (actual in ("number", "integer", "boolean") and value in (0, False)):
            return None

    return _NO_COERCION


def _coerce(schema: dict[str, Any], value: Any) -> Any:
    declared = schema.get("type")
    if declared is None or isinstance(value, (dict, list)):
        return value

    types = declared if isinstance(declared, list) else [declared]
    if any(_matches(value, t) for t in types):
        return value

    for type_name in types:
        coerced = _coerce_to(value, type_name)
        if coerced is not _NO_COERCION:
            return coerced
    return value


def _prepare(schema: Any, value: Any) -> Any:
    """Fill defaults and coerce ``value`` in place; return the new root."""
    if not isinstance(schema, dict):
        return value

    value = _coerce(schema, value)

    if isinstance(value, dict):
        for prop, subschema in (schema.get("properties") or {}).items():
            if not isinstance(subschema, dict):
                continue
            if prop not in value:
                if "default" in subschema:
                    value[prop] = copy.deepcopy(subschema["default"])
                continue
            value[prop] = _prepare(subschema, value[prop])

    elif isinstance(value, list) and isinstance(schema.get("items"), dict):
        for i, item in enumerate(value):
            value[i] = _prepare(schema["items"], item)

    return value


class SchemaValidator:
    """Compiled schema. Call with the data; inspect ``errors`` on failure."""

    def __init__(self, schema: dict[str, Any]) -> None:
        Draft7Validator.check_schema(schema)
        self.schema = schema
        self._validator = Draft7Validator(schema)
        self.errors: list[FieldError] = []

    def prepare(self, data: Any) -> Any:
        return _prepare(self.schema, data)

    def __call__(self, data: Any) -> bool:
        """Validate ``data``, mutating it with defaults and coercions.

        Only nested values are replaced in place; a coerced top-level scalar
        is not visible to the caller, use :meth:`prepare` for that.
        """
        data = self.prepare(data)
        self.errors = [
            FieldError(_format_path(error.absolute_path), error.message)
            for error in sorted(self._validator.iter_errors(data), key=lambda e: _format_path(e.absolute_path))
        ]
        return not self.errors


def compile_schema(schema: dict[str, Any]) -> SchemaValidator:
    return SchemaValidator(schema)


__all__ = ["SchemaValidator", "compile_schema"]
