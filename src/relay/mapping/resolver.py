"""Directive registry and the recursive resolver.

A mapping is plain JSON in which some objects are directives: a single key
such as ``"@path"`` whose value configures the directive. ``resolve`` walks
the mapping, runs each directive against the payload, and builds a new
structure; the caller's mapping is never modified.

Directives live in a static registry keyed by name, filled at import time by
:mod:`relay.mapping.directives`. Looking up a name that was never registered
raises :class:`~relay.core.errors.UnknownDirectiveError`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from relay.core.errors import MappingError, MappingValidationError, UnknownDirectiveError
from relay.mapping.types import DEFAULT_OPTIONS, DIRECTIVE_KEY, MappingOptions

DirectiveFn = Callable[[Any, dict[str, Any], MappingOptions], Any]
ArgumentValidator = Callable[[Any, list[str]], None]


@dataclass(frozen=True)
class Directive:
    """A registered directive.

    Attributes:
        name: Directive key, e.g. ``"@path"``.
        fn: ``(argument, payload, options) -> value``.
        validate: Structural check of the raw argument, run by the lint pass.
        deterministic: False only for directives such as ``@uuid``.
    """

    name: str
    fn: DirectiveFn
    validate: ArgumentValidator | None = None
    deterministic: bool = True


_DIRECTIVES: dict[str, Directive] = {}


def register_directive(
    name: str,
    *,
    validate: ArgumentValidator | None = None,
    deterministic: bool = True,
) -> Callable[[DirectiveFn], DirectiveFn]:
    """Decorator registering ``fn`` as the handler for ``name``.

    Example::

        @register_directive("@upper", validate=validate_directive_or_string)
        def _upper(value, payload, options):
            return resolve(value, payload, options).upper()
    """
    if not DIRECTIVE_KEY.match(name):
        raise MappingError(f'"{name}" is an invalid directive name')

    def decorator(fn: DirectiveFn) -> DirectiveFn:
        _DIRECTIVES[name] = Directive(name=name, fn=fn, validate=validate, deterministic=deterministic)
        return fn

    return decorator


def get_directive(name: str) -> Directive:
    try:
        return _DIRECTIVES[name]
    except KeyError:
        raise UnknownDirectiveError(name) from None


def registered_directives() -> list[str]:
    return sorted(_DIRECTIVES)


def _run_directive(mapping: dict[str, Any], payload: dict[str, Any], options: MappingOptions) -> Any:
    ((name, value),) = mapping.items()
    return get_directive(name).fn(value, payload, options)


def resolve(mapping: Any, payload: dict[str, Any], options: MappingOptions | None = None) -> Any:
    """Resolve ``mapping`` against ``payload``.

    Literals are returned unchanged, arrays resolve element-wise, directives
    run, and plain objects resolve each value under the same key.
    """
    options = options or DEFAULT_OPTIONS

    if isinstance(mapping, list):
        return [resolve(item, payload, options) for item in mapping]

    if not isinstance(mapping, dict):
        return mapping

    directive_keys = [k for k in mapping if isinstance(k, str) and k.startswith("@")]
    if directive_keys:
        if len(mapping) == 1:
            return _run_directive(mapping, payload, options)
        raise MappingValidationError(
            [f"object mixes directive key {directive_keys[0]!r} with {len(mapping) - 1} other key(s)"]
        )

    return {key: resolve(value, payload, options) for key, value in mapping.items()}


__all__ = [
    "Directive",
    "register_directive",
    "get_directive",
    "registered_directives",
    "resolve",
]
