"""Value model shared by the resolver, the directives, and the lint pass."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

DIRECTIVE_KEY = re.compile(r"^@[a-z][a-zA-Z0-9]+$")


class _Undefined:
    """A member that resolved to nothing. Distinct from ``None`` (JSON null)."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Undefined:
        return self

    def __deepcopy__(self, memo: dict) -> _Undefined:
        return self


UNDEFINED: Any = _Undefined()


@dataclass(frozen=True)
class MappingOptions:
    """Caller-controlled knobs for resolution.

    Attributes:
        escape_html: HTML-escape values interpolated by ``@template``.
    """

    escape_html: bool = False


DEFAULT_OPTIONS = MappingOptions()


def real_type_of(value: Any) -> str:
    """JSON-flavoured type name used in error messages.

    Objects holding any ``@``-prefixed key report as ``"directive"`` so that
    mixed objects are caught by the directive checks.
    """
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        if any(isinstance(k, str) and k.startswith("@") for k in value):
            return "directive"
        return "object"
    return type(value).__name__


def is_object(value: Any) -> bool:
    return isinstance(value, dict)


def is_directive(value: Any) -> bool:
    """True for a single-key object whose key is a well-formed directive name."""
    if not isinstance(value, dict) or len(value) != 1:
        return False
    (key,) = value
    return isinstance(key, str) and DIRECTIVE_KEY.match(key) is not None


def contains_directive(value: Any) -> bool:
    """True if ``value`` holds a directive key anywhere."""
    if isinstance(value, dict):
        if any(isinstance(k, str) and k.startswith("@") for k in value):
            return True
        return any(contains_directive(v) for v in value.values())
    if isinstance(value, list):
        return any(contains_directive(v) for v in value)
    return False


def remove_undefined(value: Any) -> Any:
    """Drop UNDEFINED object members recursively.

    UNDEFINED array items become ``None``, mirroring how JSON serialisers
    render holes in arrays.
    """
    if isinstance(value, dict):
        return {k: remove_undefined(v) for k, v in value.items() if v is not UNDEFINED}
    if isinstance(value, list):
        return [None if v is UNDEFINED else remove_undefined(v) for v in value]
    return value


def indefinite_article(word: str) -> str:
    return "an" if word[:1] in "aeiou" else "a"
