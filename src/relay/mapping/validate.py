"""Structural lint for mappings.

Runs before resolution and looks only at the mapping, never the payload.
Problems below one object are collected and raised together as a single
:class:`~relay.core.errors.MappingValidationError`, each entry prefixed with
the path of the offending location, e.g. ``/properties/@if/then should be
a string or a mapping directive but it is a number.``

Unknown directive names are not collected: they raise
:class:`~relay.core.errors.UnknownDirectiveError` immediately because they
point at a broken action definition rather than bad data.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from relay.core.errors import MappingValidationError
from relay.mapping.resolver import get_directive
from relay.mapping.types import indefinite_article, real_type_of

Validator = Callable[[Any, list[str]], None]

_RAW_TYPES = {"object", "array", "boolean", "string", "number", "null", "undefined"}


def _problem(message: str, stack: list[str]) -> MappingValidationError:
    return MappingValidationError([f"/{'/'.join(stack)} {message}."])


def _typed(type_name: str) -> str:
    return f"{indefinite_article(type_name)} {type_name}"


class _Collector:
    """Accumulates problems from several sibling checks."""

    def __init__(self) -> None:
        self.problems: list[str] = []

    def run(self, check: Validator, value: Any, stack: list[str]) -> None:
        try:
            check(value, stack)
        except MappingValidationError as e:
            self.problems.extend(e.problems)

    def raise_if_any(self) -> None:
        if self.problems:
            raise MappingValidationError(self.problems)


def validate_mapping(mapping: Any, stack: list[str] | None = None) -> None:
    """Lint ``mapping`` recursively; raise on the first object with problems."""
    stack = stack or []
    kind = real_type_of(mapping)

    if kind == "directive":
        validate_directive(mapping, stack)
    elif kind == "object":
        validate_object(mapping, stack)
    elif kind == "array":
        validate_array(mapping, stack)
    elif kind not in _RAW_TYPES:
        raise _problem(f"should be a JSON value but it is {_typed(kind)}", stack)


def validate_directive(obj: Any, stack: list[str]) -> None:
    kind = real_type_of(obj)
    if kind not in ("directive", "object"):
        raise _problem(f"should be a directive object but it is {_typed(kind)}", stack)

    keys = list(obj)
    directive_keys = [k for k in keys if k.startswith("@")]

    if not directive_keys:
        raise _problem("should have an @-prefixed key but it has none", stack)

    if len(directive_keys) > 1:
        raise _problem(f"should only have one @-prefixed key but it has {len(directive_keys)} keys", stack)

    if len(keys) > len(directive_keys):
        raise _problem(f"should only have one @-prefixed key but it has {len(keys)} keys", stack)

    name = directive_keys[0]
    directive = get_directive(name)

    if directive.validate is not None:
        directive.validate(obj[name], [*stack, name])


def validate_object(obj: Any, stack: list[str]) -> None:
    kind = real_type_of(obj)
    if kind != "object":
        raise _problem(f"should be an object but it is {_typed(kind)}", stack)

    collector = _Collector()
    for key, value in obj.items():
        collector.run(validate_mapping, value, [*stack, str(key)])
    collector.raise_if_any()


def validate_array(arr: Any, stack: list[str]) -> None:
    kind = real_type_of(arr)
    if kind != "array":
        raise _problem(f"should be an array but it is {_typed(kind)}", stack)

    collector = _Collector()
    for i, item in enumerate(arr):
        collector.run(validate_mapping, item, [*stack, str(i)])
    collector.raise_if_any()


# -- argument validators used by the directive registrations


def validate_directive_or_raw(value: Any, stack: list[str]) -> None:
    kind = real_type_of(value)
    if kind not in _RAW_TYPES and kind != "directive":
        raise _problem(f"should be a mapping directive or a JSON value but it is {_typed(kind)}", stack)
    validate_mapping(value, stack)


def validate_directive_or_string(value: Any, stack: list[str]) -> None:
    kind = real_type_of(value)
    if kind == "directive":
        validate_directive(value, stack)
    elif kind != "string":
        raise _problem(f"should be a string or a mapping directive but it is {_typed(kind)}", stack)


def validate_directive_or_object(value: Any, stack: list[str]) -> None:
    kind = real_type_of(value)
    if kind == "directive":
        validate_directive(value, stack)
    elif kind == "object":
        validate_object(value, stack)
    else:
        raise _problem(f"should be a mapping directive or an object but it is {_typed(kind)}", stack)


def validate_directive_or_array(value: Any, stack: list[str]) -> None:
    kind = real_type_of(value)
    if kind == "directive":
        validate_directive(value, stack)
    elif kind == "array":
        validate_array(value, stack)
    else:
        raise _problem(f"should be a mapping directive or an array but it is {_typed(kind)}", stack)


def validate_object_with_fields(
    obj: Any,
    stack: list[str],
    *,
    required: dict[str, Validator] | None = None,
    optional: dict[str, Validator] | None = None,
    exactly_one_of: tuple[str, ...] = (),
) -> None:
    """Check a directive argument object field by field.

    ``exactly_one_of`` names mutually exclusive fields of which one must be
    present, e.g. the ``exists`` / ``true`` condition of ``@if``.
    """
    kind = real_type_of(obj)
    if kind != "object":
        raise _problem(f"should be an object but it is {_typed(kind)}", stack)

    collector = _Collector()

    for prop, check in (required or {}).items():
        if prop not in obj:
            collector.problems.append(f"/{'/'.join(stack)} should have field {prop!r} but it doesn't.")
        else:
            collector.run(check, obj[prop], [*stack, prop])

    for prop, check in (optional or {}).items():
        if prop in obj:
            collector.run(check, obj[prop], [*stack, prop])

    if exactly_one_of:
        present = [prop for prop in exactly_one_of if prop in obj]
        if len(present) != 1:
            names = " or ".join(repr(prop) for prop in exactly_one_of)
            found = str(len(present)) if present else "none"
            collector.problems.append(f"/{'/'.join(stack)} should have exactly one of {names} but it has {found}.")

    collector.raise_if_any()


__all__ = [
    "validate_mapping",
    "validate_directive",
    "validate_object",
    "validate_array",
    "validate_directive_or_raw",
    "validate_directive_or_string",
    "validate_directive_or_object",
    "validate_directive_or_array",
    "validate_object_with_fields",
]
