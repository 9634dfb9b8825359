"""Top-level mapping entry point.

``transform`` is what actions call: lint, resolve, then drop every member
that resolved to nothing so the result is plain JSON.

Examples:
    >>> transform({"email": {"@path": "$.traits.email"}, "x": {"@path": "$.nope"}},
    ...           {"traits": {"email": "a@b.co"}})
    {'email': 'a@b.co'}
"""

from __future__ import annotations

from typing import Any

from relay.core.errors import MappingError
from relay.mapping.resolver import resolve
from relay.mapping.types import MappingOptions, real_type_of, remove_undefined
from relay.mapping.validate import validate_mapping


def transform(
    mapping: dict[str, Any],
    payload: dict[str, Any],
    options: MappingOptions | None = None,
) -> dict[str, Any]:
    """Resolve ``mapping`` against ``payload`` and strip unresolved members.

    Raises:
        MappingError: ``payload`` is not an object.
        MappingValidationError: the mapping is structurally invalid.
        DirectiveError: a directive got an argument it cannot use.
    """
    if not isinstance(payload, dict):
        raise MappingError(f"data must be an object, got {real_type_of(payload)}")

    validate_mapping(mapping)
    resolved = resolve(mapping, payload, options)
    return remove_undefined(resolved)


__all__ = ["transform"]
