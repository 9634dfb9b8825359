"""Tests for the structural lint in relay.mapping.validate."""

import pytest

from relay.core.errors import MappingValidationError, UnknownDirectiveError
from relay.mapping import validate_mapping


def _problems(mapping) -> list[str]:
    with pytest.raises(MappingValidationError) as exc_info:
        validate_mapping(mapping)
    return exc_info.value.problems


class TestValidMappings:
    @pytest.mark.parametrize(
        "mapping",
        [
            {},
            {"a": 1, "b": [True, None, "x"], "c": {"d": 2.5}},
            {"email": {"@path": "$.traits.email"}},
            {"t": {"@template": "{{ name }}"}},
            {"v": {"@if": {"exists": {"@path": "$.a"}, "then": "y", "else": {"@path": "$.b"}}}},
            {"m": {"@merge": [{"a": 1}, {"@path": "$.traits"}]}},
            {"p": {"@pick": {"object": {"@path": "$.traits"}, "fields": ["a", "b"]}}},
            {"ts": {"@timestamp": {"timestamp": {"@path": "$.ts"}, "format": "json"}}},
            {"j": {"@json": {"@path": "$.properties"}}},
        ],
    )
    def test_accepts(self, mapping):
        validate_mapping(mapping)


class TestProblems:
    def test_wrong_argument_type_names_the_location(self):
        assert _problems({"a": {"@path": 5}}) == [
            "/a/@path should be a string or a mapping directive but it is a number."
        ]

    def test_mixed_keys(self):
        (problem,) = _problems({"a": {"@path": "$.x", "b": 1}})
        assert problem == "/a should only have one @-prefixed key but it has 2 keys."

    def test_two_directive_keys(self):
        (problem,) = _problems({"a": {"@path": "$.x", "@template": "y"}})
        assert "should only have one @-prefixed key but it has 2 keys" in problem

    def test_missing_required_field(self):
        (problem,) = _problems({"ts": {"@timestamp": {"timestamp": "2021-01-01"}}})
        assert problem == "/ts/@timestamp should have field 'format' but it doesn't."

    def test_sibling_problems_are_collected(self):
        problems = _problems({"a": {"@path": 1}, "b": {"@lowercase": []}, "c": "fine"})
        assert problems == [
            "/a/@path should be a string or a mapping directive but it is a number.",
            "/b/@lowercase should be a string or a mapping directive but it is an array.",
        ]

    def test_nested_argument_location(self):
        (problem,) = _problems({"x": {"@if": {"exists": {"@path": "$.a"}, "then": {"@template": True}}}})
        assert problem.startswith("/x/@if/then/@template ")

    @pytest.mark.parametrize(
        "condition,found",
        [({}, "none"), ({"exists": {"@path": "$.a"}, "true": {"@path": "$.b"}}, "2")],
    )
    def test_if_needs_exactly_one_condition(self, condition, found):
        (problem,) = _problems({"x": {"@if": {**condition, "then": 1}}})
        assert problem == f"/x/@if should have exactly one of 'exists' or 'true' but it has {found}."

    def test_merge_elements_must_be_objects(self):
        (problem,) = _problems({"m": {"@merge": [{"a": 1}, "nope"]}})
        assert problem == "/m/@merge/1 should be a mapping directive or an object but it is a string."

    def test_rejects_non_json_values(self):
        (problem,) = _problems({"when": {1, 2}})
        assert problem == "/when should be a JSON value but it is a set."

    def test_unknown_directive_raises_immediately(self):
        with pytest.raises(UnknownDirectiveError):
            validate_mapping({"a": {"@nope": 1}})
