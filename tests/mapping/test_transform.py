"""Tests for relay.mapping.resolve / relay.mapping.transform."""

import copy

import pytest

from relay.core.errors import MappingError, MappingValidationError
from relay.mapping import UNDEFINED, resolve, transform


EVENT = {
    "type": "track",
    "event": "Order Completed",
    "userId": "u-1",
    "properties": {"total": 42.5, "products": [{"sku": "a"}, {"sku": "b"}]},
    "traits": {"email": "Ada@Example.com", "name": None},
}


class TestResolvePassThrough:
    """Literals come back unchanged."""

    @pytest.mark.parametrize("literal", [1, 2.5, "text", True, False, None, UNDEFINED])
    def test_literals(self, literal):
        assert resolve(literal, EVENT) is literal or resolve(literal, EVENT) == literal

    def test_arrays_resolve_element_wise(self):
        mapping = [1, {"@path": "$.userId"}, [{"@path": "$.type"}]]
        assert resolve(mapping, EVENT) == [1, "u-1", ["track"]]

    def test_plain_objects_keep_keys(self):
        mapping = {"id": {"@path": "$.userId"}, "static": "x", "nested": {"t": {"@path": "$.type"}}}
        assert resolve(mapping, EVENT) == {"id": "u-1", "static": "x", "nested": {"t": "track"}}

    def test_mixed_directive_object_rejected_at_resolution(self):
        with pytest.raises(MappingValidationError):
            resolve({"@path": "$.userId", "other": 1}, EVENT)


class TestTransformLaws:
    def test_empty_mapping(self):
        assert transform({}, EVENT) == {}

    def test_literal_mapping_on_empty_payload(self):
        assert transform({"a": 1}, {}) == {"a": 1}

    def test_undefined_member_is_stripped(self):
        assert transform({"x": UNDEFINED}, {}) == {}

    def test_null_member_is_kept(self):
        assert transform({"x": None}, {}) == {"x": None}

    def test_undefined_array_item_becomes_null(self):
        assert transform({"xs": [1, {"@path": "$.nope"}]}, {}) == {"xs": [1, None]}

    def test_missing_path_is_undefined_before_strip(self):
        mapping = {"email": {"@path": "$.traits.missing"}}
        assert resolve(mapping, EVENT) == {"email": UNDEFINED}
        assert transform(mapping, EVENT) == {}

    def test_deterministic(self):
        mapping = {
            "email": {"@lowercase": {"@path": "$.traits.email"}},
            "skus": {"@path": "$.properties.products[*].sku"},
            "label": {"@template": "{{ event }} by {{ userId }}"},
        }
        assert transform(mapping, EVENT) == transform(mapping, EVENT)
        assert transform(mapping, EVENT) == {
            "email": "ada@example.com",
            "skus": ["a", "b"],
            "label": "Order Completed by u-1",
        }

    def test_does_not_mutate_mapping_or_payload(self):
        mapping = {"p": {"@omit": {"object": {"@path": "$.properties"}, "fields": ["total"]}}}
        mapping_before = copy.deepcopy(mapping)
        event_before = copy.deepcopy(EVENT)
        transform(mapping, EVENT)
        assert mapping == mapping_before
        assert EVENT == event_before


class TestTransformErrors:
    @pytest.mark.parametrize("payload", [None, [], "event", 3])
    def test_payload_must_be_object(self, payload):
        with pytest.raises(MappingError, match="data must be an object"):
            transform({}, payload)

    def test_structural_problems_raise_before_resolution(self):
        with pytest.raises(MappingValidationError):
            transform({"a": {"@path": 5}}, EVENT)
