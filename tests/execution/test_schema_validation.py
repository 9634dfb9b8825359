"""Tests for relay.execution.validation and relay.execution.fields."""

import jsonschema
import pytest

from relay.execution import compile_schema, fields_to_json_schema


def _schema(**properties) -> dict:
    return {"type": "object", "properties": properties}


class TestCoercion:
    @pytest.mark.parametrize(
        "declared,value,expected",
        [
            ("string", 1.5, "1.5"),
            ("string", True, "true"),
            ("string", None, ""),
            ("number", "1.5", 1.5),
            ("number", True, 1),
            ("number", None, 0),
            ("integer", "3", 3),
            ("boolean", "false", False),
            ("boolean", 1, True),
            ("boolean", None, False),
            ("null", "", None),
            ("null", 0, None),
        ],
    )
    def test_scalars(self, declared, value, expected):
        validate = compile_schema(_schema(v={"type": declared}))
        data = {"v": value}
        assert validate(data)
        assert data["v"] == expected
        assert type(data["v"]) is type(expected)

    @pytest.mark.parametrize(
        "declared,value",
        [("integer", "3.5"), ("number", "abc"), ("boolean", "yes"), ("number", ""), ("string", [1]), ("string", {})],
    )
    def test_no_lossless_conversion(self, declared, value):
        validate = compile_schema(_schema(v={"type": declared}))
        data = {"v": value}
        assert not validate(data)
        assert data["v"] == value
        assert validate.errors[0].path == "$.v"

    def test_type_lists_try_each_type(self):
        validate = compile_schema(_schema(v={"type": ["null", "integer"]}))
        data = {"v": "7"}
        assert validate(data)
        assert data["v"] == 7

    def test_array_items(self):
        validate = compile_schema(_schema(ids={"type": "array", "items": {"type": "string"}}))
        data = {"ids": [1, "b", 2.5]}
        assert validate(data)
        assert data["ids"] == ["1", "b", "2.5"]


class TestDefaults:
    def test_missing_properties_get_defaults(self):
        validate = compile_schema(_schema(username={"type": "string", "default": "Relay"}, n={"type": "integer"}))
        data: dict = {}
        assert validate(data)
        assert data == {"username": "Relay"}

    def test_present_values_win(self):
        validate = compile_schema(_schema(username={"type": "string", "default": "Relay"}))
        data = {"username": "Ada"}
        validate(data)
        assert data == {"username": "Ada"}

    def test_defaults_are_copied(self):
        schema = _schema(tags={"type": "array", "default": []})
        validate = compile_schema(schema)
        first: dict = {}
        validate(first)
        first["tags"].append("x")
        assert schema["properties"]["tags"]["default"] == []

    def test_nested_defaults(self):
        validate = compile_schema(
            _schema(options={"type": "object", "properties": {"retries": {"type": "integer", "default": 3}}})
        )
        data = {"options": {}}
        validate(data)
        assert data == {"options": {"retries": 3}}


class TestErrors:
    def test_errors_sorted_by_path(self):
        validate = compile_schema(_schema(b={"type": "integer"}, a={"type": "integer"}, items={"type": "array"}))
        assert not validate({"b": "x", "a": "y", "items": 3})
        assert [e.path for e in validate.errors] == ["$.a", "$.b", "$.items"]

    def test_array_index_path(self):
        validate = compile_schema(_schema(xs={"type": "array", "items": {"type": "integer"}}))
        assert not validate({"xs": [1, "two"]})
        assert validate.errors[0].path == "$.xs[1]"

    def test_errors_reset_between_calls(self):
        validate = compile_schema(_schema(n={"type": "integer"}))
        validate({"n": "x"})
        assert validate({"n": 1})
        assert validate.errors == []

    def test_invalid_schema_rejected_at_compile(self):
        with pytest.raises(jsonschema.SchemaError):
            compile_schema({"type": "not-a-type"})


class TestFieldsToJsonSchema:
    def test_required_flags_are_lifted(self):
        schema = fields_to_json_schema(
            {
                "text": {"type": "string", "required": True, "description": "Message body"},
                "channel": {"type": "string"},
            }
        )
        assert schema["type"] == "object"
        assert schema["additionalProperties"] is False
        assert schema["required"] == ["text"]
        assert schema["properties"]["text"] == {"type": "string", "description": "Message body"}

    def test_empty(self):
        schema = fields_to_json_schema()
        assert schema["properties"] == {}
        assert schema["required"] == []

    def test_round_trips_through_validator(self):
        validate = compile_schema(fields_to_json_schema({"text": {"type": "string", "required": True}}))
        assert validate({"text": "hi"})
        assert not validate({"text": "hi", "extra": 1})
