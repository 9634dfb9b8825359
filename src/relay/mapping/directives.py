"""Built-in directives.

Importing this module fills the registry in :mod:`relay.mapping.resolver`.
Every directive resolves its own argument first, so directives nest freely::

    {"@lowercase": {"@path": "$.traits.email"}}

All directives are deterministic except ``@uuid``, which returns a fresh
random identifier on every call.
"""

from __future__ import annotations

import base64
import copy
import json
import uuid
from collections.abc import Callable
from functools import lru_cache
from typing import Any

import arrow
import chevron
from chevron.tokenizer import ChevronError, tokenize
from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError
from jsonpath_ng.ext import parse as parse_jsonpath

from relay.core.errors import DirectiveError
from relay.mapping.resolver import register_directive, resolve
from relay.mapping.types import UNDEFINED, MappingOptions, real_type_of, remove_undefined
from relay.mapping.validate import (
    validate_array,
    validate_directive_or_array,
    validate_directive_or_object,
    validate_directive_or_raw,
    validate_directive_or_string,
    validate_object_with_fields,
)

StringDirectiveFn = Callable[[str, dict[str, Any], MappingOptions], Any]


def string_directive(name: str) -> Callable[[StringDirectiveFn], StringDirectiveFn]:
    """Register a directive whose argument must resolve to a string."""

    def decorator(fn: StringDirectiveFn) -> StringDirectiveFn:
        @register_directive(name, validate=validate_directive_or_string)
        def _wrapper(value: Any, payload: dict[str, Any], options: MappingOptions) -> Any:
            resolved = resolve(value, payload, options)
            if not isinstance(resolved, str):
                raise DirectiveError(name, f"expected string, got {real_type_of(resolved)}")
            return fn(resolved, payload, options)

        return fn

    return decorator


# ── @path ────────────────────────────────────────────────────────────────


@lru_cache(maxsize=512)
def _compile_path(path: str):
    try:
        return parse_jsonpath(path)
    except (JsonPathLexerError, JsonPathParserError) as e:
        raise DirectiveError("@path", f"invalid path {path!r}: {e}") from e


def find_path(path: str, data: Any) -> list[Any]:
    """All values matched by a JSONPath expression, in document order."""
    return [match.value for match in _compile_path(path).find(data)]


@string_directive("@path")
def _path(path: str, payload: dict[str, Any], options: MappingOptions) -> Any:
    found = find_path(path, payload)
    if len(found) > 1:
        return found
    if found:
        return found[0]
    return UNDEFINED


# ── @template ────────────────────────────────────────────────────────────
#
# Mustache references (``{{traits.first-name}}``) rendered by chevron. The
# payload is wrapped first so values print the way partner APIs expect:
# booleans as ``true``/``false`` and objects or arrays as compact JSON.


def _compact_json(value: Any) -> str:
    return json.dumps(remove_undefined(value), separators=(",", ":"))


class _Flag(int):
    """Boolean that renders lowercase and stays falsy in sections."""

    # chevron swaps falsy lookups for "" unless the value opts out
    _CHEVRON_return_scope_when_falsy = True

    def __str__(self) -> str:
        return "true" if self else "false"


class _ObjectView(dict):
    def __init__(self, source: dict[str, Any]):
        super().__init__((k, _template_view(v)) for k, v in source.items() if v is not UNDEFINED)
        self.source = source

    def __str__(self) -> str:
        return _compact_json(self.source)


class _ArrayView(list):
    def __init__(self, source: list[Any]):
        super().__init__(_template_view(v) for v in source)
        self.source = source

    def __str__(self) -> str:
        return _compact_json(self.source)


def _template_view(value: Any) -> Any:
    if isinstance(value, bool):
        return _Flag(value)
    if isinstance(value, dict):
        return _ObjectView(value)
    if isinstance(value, list):
        return _ArrayView(value)
    return value


@lru_cache(maxsize=512)
def _compile_template(template: str, escape_html: bool) -> tuple[tuple[str, str], ...]:
    try:
        tokens = list(tokenize(template))
    except ChevronError as e:
        raise DirectiveError("@template", f"invalid template: {e}") from e

    compiled = []
    for tag, key in tokens:
        if tag == "partial":
            raise DirectiveError("@template", f"partials are not supported: {{{{> {key}}}}}")
        if tag == "variable" and not escape_html:
            tag = "no escape"
        compiled.append((tag, key))
    return tuple(compiled)


@string_directive("@template")
def _template(template: str, payload: dict[str, Any], options: MappingOptions) -> str:
    tokens = _compile_template(template, options.escape_html)
    return chevron.render(list(tokens), _template_view(payload))


# ── @if ──────────────────────────────────────────────────────────────────


def _validate_if(value: Any, stack: list[str]) -> None:
    validate_object_with_fields(
        value,
        stack,
        optional={
            "exists": validate_directive_or_raw,
            "true": validate_directive_or_raw,
            "then": validate_directive_or_raw,
            "else": validate_directive_or_raw,
        },
        exactly_one_of=("exists", "true"),
    )


@register_directive("@if", validate=_validate_if)
def _if(opts: Any, payload: dict[str, Any], options: MappingOptions) -> Any:
    if not isinstance(opts, dict):
        raise DirectiveError("@if", 'requires an object with one of: "exists", "true"')
    if "exists" in opts and "true" in opts:
        raise DirectiveError("@if", "takes exactly one of: exists, true")

    if "exists" in opts:
        value = resolve(opts["exists"], payload, options)
        condition = value is not UNDEFINED and value is not None
    elif "true" in opts:
        value = resolve(opts["true"], payload, options)
        condition = value is not UNDEFINED and value is not None and str(value).lower() == "true"
    else:
        raise DirectiveError("@if", "requires one of: exists, true")

    if condition and "then" in opts:
        return resolve(opts["then"], payload, options)
    if not condition and "else" in opts:
        return resolve(opts["else"], payload, options)
    return UNDEFINED


# ── @merge / @pick / @omit ───────────────────────────────────────────────


def _validate_merge(value: Any, stack: list[str]) -> None:
    validate_array(value, stack)
    for i, item in enumerate(value):
        validate_directive_or_object(item, [*stack, str(i)])


@register_directive("@merge", validate=_validate_merge)
def _merge(items: Any, payload: dict[str, Any], options: MappingOptions) -> dict[str, Any]:
    if not isinstance(items, list):
        raise DirectiveError("@merge", f"expected array, got {real_type_of(items)}")

    merged: dict[str, Any] = {}
    for item in items:
        resolved = resolve(item, payload, options)
        if not isinstance(resolved, dict):
            raise DirectiveError("@merge", f"expected every element to be an object, got {real_type_of(resolved)}")
        merged.update(resolved)
    return merged


def _validate_object_and_fields(value: Any, stack: list[str]) -> None:
    validate_object_with_fields(
        value,
        stack,
        required={"object": validate_directive_or_object, "fields": validate_directive_or_array},
    )
    if isinstance(value.get("fields"), list):
        for i, item in enumerate(value["fields"]):
            validate_directive_or_string(item, [*stack, "fields", str(i)])


def _object_and_fields(
    directive: str, opts: Any, payload: dict[str, Any], options: MappingOptions
) -> tuple[dict[str, Any], list[str]]:
    if not isinstance(opts, dict):
        raise DirectiveError(directive, f"expected object, got {real_type_of(opts)}")

    obj = resolve(opts.get("object", UNDEFINED), payload, options)
    if not isinstance(obj, dict):
        raise DirectiveError(directive, f"expected object, got {real_type_of(obj)}")

    fields = resolve(opts.get("fields", UNDEFINED), payload, options)
    if not isinstance(fields, list):
        raise DirectiveError(directive, f"expected fields as array, got {real_type_of(fields)}")

    return obj, fields


@register_directive("@pick", validate=_validate_object_and_fields)
def _pick(opts: Any, payload: dict[str, Any], options: MappingOptions) -> dict[str, Any]:
    obj, fields = _object_and_fields("@pick", opts, payload, options)
    return {f: copy.deepcopy(obj[f]) for f in fields if f in obj}


@register_directive("@omit", validate=_validate_object_and_fields)
def _omit(opts: Any, payload: dict[str, Any], options: MappingOptions) -> dict[str, Any]:
    obj, fields = _object_and_fields("@omit", opts, payload, options)
    cloned = copy.deepcopy(obj)
    for f in fields:
        cloned.pop(f, None)
    return cloned


# ── @timestamp ───────────────────────────────────────────────────────────


def _validate_timestamp(value: Any, stack: list[str]) -> None:
    validate_object_with_fields(
        value,
        stack,
        required={"timestamp": validate_directive_or_string, "format": validate_directive_or_string},
        optional={"inputFormat": validate_directive_or_string},
    )


@register_directive("@timestamp", validate=_validate_timestamp)
def _timestamp(opts: Any, payload: dict[str, Any], options: MappingOptions) -> str | None:
    if not isinstance(opts, dict):
        raise DirectiveError("@timestamp", f"requires an object, got {real_type_of(opts)}")

    ts = resolve(opts.get("timestamp", UNDEFINED), payload, options)
    if not isinstance(ts, str):
        raise DirectiveError("@timestamp", f"timestamp must be a string, got {real_type_of(ts)}")

    fmt = resolve(opts.get("format", UNDEFINED), payload, options)
    if not isinstance(fmt, str):
        raise DirectiveError("@timestamp", f"format must be a string, got {real_type_of(fmt)}")

    input_format = resolve(opts.get("inputFormat", UNDEFINED), payload, options)
    if input_format is not UNDEFINED and not isinstance(input_format, str):
        raise DirectiveError("@timestamp", f"inputFormat must be a string, got {real_type_of(input_format)}")

    try:
        parsed = arrow.get(ts) if input_format is UNDEFINED else arrow.get(ts, input_format)
    except (arrow.parser.ParserError, ValueError, TypeError):
        return None

    parsed = parsed.to("UTC")
    if fmt == "json":
        return parsed.format("YYYY-MM-DDTHH:mm:ss.SSS") + "Z"
    return parsed.format(fmt)


# ── string helpers ───────────────────────────────────────────────────────


@string_directive("@base64")
def _base64(value: str, payload: dict[str, Any], options: MappingOptions) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


@string_directive("@lowercase")
def _lowercase(value: str, payload: dict[str, Any], options: MappingOptions) -> str:
    return value.lower()


# ── @root / @json / @uuid ────────────────────────────────────────────────


@register_directive("@root")
def _root(_: Any, payload: dict[str, Any], options: MappingOptions) -> dict[str, Any]:
    return payload


@register_directive("@json", validate=validate_directive_or_raw)
def _json(value: Any, payload: dict[str, Any], options: MappingOptions) -> Any:
    resolved = resolve(value, payload, options)
    if resolved is UNDEFINED:
        return UNDEFINED
    return json.dumps(remove_undefined(resolved), separators=(",", ":"), ensure_ascii=False)


@register_directive("@uuid", deterministic=False)
def _uuid(_: Any, payload: dict[str, Any], options: MappingOptions) -> str:
    return str(uuid.uuid4())
