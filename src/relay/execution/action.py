"""Action runtime: the step pipeline behind one partner action.

An :class:`Action` is built once per destination action and executed once
per matching event. Construction turns an :class:`ActionDefinition` into a
fixed sequence of steps; execution threads an :class:`ExecuteInput` through
them.

Manifesto:
    - **Map, then validate, then call:** ``perform`` only ever sees a payload
      that was mapped and passed schema validation.
    - **Cached fields are steps:** Token fetches and lookups run before
      ``perform`` and land in ``ctx.cached_fields``.
    - **Responses are observable:** Every HTTP response seen by a request
      step, successful or not, is handed to ``on_response`` before the step
      settles. Nothing global is involved.

Architecture:
    ::

        Action(definition, extend_request, on_response)
          MapInput            settings + mapping → ctx.settings / ctx.payload
          Validate            only when the definition declares fields/schema
          CachedRequest × N   one per cached field, declaration order
          Request             definition.perform(request, ctx)

        FanOut (fluent API)
          on="$.payload.channels", as_="channel"
          ├── Do / Request / CachedRequest   nested Steps per element
          └── asyncio.gather over ctx.fork(as_, element)

Examples:
    >>> action = Action(ActionDefinition(
    ...     title="Post Message",
    ...     fields={"text": {"type": "string", "required": True}},
    ...     perform=lambda request, ctx: request(URL, method="POST", json=ctx.payload),
    ... ))
    >>> results = await action.execute(ExecuteInput(
    ...     payload={"message": "hi"}, mapping={"text": {"@path": "$.message"}}
    ... ))
    >>> [r.output for r in results][:2]
    ['MapInput completed', 'Validate completed']

Tags:
    action, pipeline, fan-out, cached-request, relay
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from relay.core.cache import MISSING, InMemoryCache
from relay.core.errors import FanOutError, PayloadValidationError, is_not_found
from relay.core.logging import get_logger
from relay.core.settings import get_settings
from relay.execution.fields import InputField, fields_to_json_schema
from relay.execution.request_client import RequestClient, RequestOptions, create_request_client
from relay.execution.step import ExecuteInput, Step, StepResult, Steps
from relay.execution.validation import compile_schema
from relay.mapping import contains_directive, find_path, transform
from relay.mapping.types import indefinite_article, real_type_of

logger = get_logger(__name__)

RequestFn = Callable[[RequestClient, ExecuteInput], Any]
RequestExtension = Callable[[ExecuteInput], RequestOptions]
ResponseObserver = Callable[[httpx.Response], None]


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass
class CachedField:
    """A value fetched before ``perform`` and stored in ``ctx.cached_fields``.

    Attributes:
        key: ``ctx -> str`` cache key.
        value: ``(request, ctx) -> value``, sync or async.
        ttl: Seconds a cached value stays fresh (0 means no expiry).
        negative: Also cache ``None`` results (including 404s).
    """

    key: Callable[[ExecuteInput], str]
    value: RequestFn
    ttl: float
    negative: bool = False


@dataclass
class ActionDefinition:
    """What a partner connector declares for one action."""

    title: str
    description: str = ""
    perform: RequestFn | None = None
    fields: dict[str, InputField] | None = None
    schema: dict[str, Any] | None = None
    autocomplete_fields: dict[str, RequestFn] = field(default_factory=dict)
    cached_fields: dict[str, CachedField] = field(default_factory=dict)
    default_subscription: str | None = None

    def input_schema(self) -> dict[str, Any] | None:
        if self.schema is not None:
            return self.schema
        if self.fields is not None:
            return fields_to_json_schema(self.fields)
        return None


# =============================================================================
# STEPS
# =============================================================================


class MapInput(Step):
    """Resolve settings and the subscription mapping against the event."""

    async def perform_step(self, ctx: ExecuteInput) -> str:
        if ctx.settings and contains_directive(ctx.settings):
            ctx.settings = transform(ctx.settings, ctx.payload)

        if ctx.mapping is not None:
            ctx.payload = transform(ctx.mapping, ctx.payload)

        return "MapInput completed"


class Validate(Step):
    """Check ``ctx.payload`` (or ``ctx.settings``) against a JSON Schema."""

    def __init__(self, field: str, schema: dict[str, Any]) -> None:
        super().__init__()
        self.field = field
        self.validator = compile_schema(schema)

    async def perform_step(self, ctx: ExecuteInput) -> str:
        data = self.validator.prepare(getattr(ctx, self.field))
        setattr(ctx, self.field, data)

        if not self.validator(data):
            raise PayloadValidationError(self.validator.errors, field=self.field)

        return "Validate completed"


class Request(Step):
    """Call a request function with a client built from the extensions.

    ``extensions`` is held by reference: extensions registered on the owning
    action after this step was created still apply.
    """

    def __init__(
        self,
        extensions: list[RequestExtension],
        request_fn: RequestFn | None = None,
        on_response: ResponseObserver | None = None,
    ) -> None:
        super().__init__()
        self.extensions = extensions
        self.request_fn = request_fn
        self.on_response = on_response

    def create_request_client(self, ctx: ExecuteInput) -> RequestClient:
        options = [extension(ctx) for extension in self.extensions]
        if self.on_response is not None:
            options.append({"on_response": self.on_response})
        return create_request_client(*options)

    async def call(self, ctx: ExecuteInput) -> Any:
        """Run the request function and return its raw result."""
        return await maybe_await(self.request_fn(self.create_request_client(ctx), ctx))

    async def perform_step(self, ctx: ExecuteInput) -> Any:
        if self.request_fn is None:
            return ""

        response = await self.call(ctx)
        if isinstance(response, httpx.Response):
            return response.text
        return response


class CachedRequest(Request):
    """Request whose result is memoized in a cache owned by this step."""

    def __init__(
        self,
        extensions: list[RequestExtension],
        *,
        key: Callable[[ExecuteInput], str],
        value: RequestFn,
        as_: str,
        ttl: float,
        negative: bool = False,
        max_keys: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_response: ResponseObserver | None = None,
    ) -> None:
        super().__init__(extensions, value, on_response)
        self.key_fn = key
        self.as_ = as_
        self.negative = negative
        self.cache = InMemoryCache(
            max_size=max_keys or get_settings().cache_max_keys,
            default_ttl_seconds=ttl,
            clock=clock,
        )

    async def perform_step(self, ctx: ExecuteInput) -> str:
        k = self.key_fn(ctx)
        v = self.cache.get(k, MISSING)

        if v is not MISSING:
            ctx.cached_fields[self.as_] = v
            logger.debug("cache.hit", step=self.id, field=self.as_)
            return "cache hit"

        try:
            v = await self.call(ctx)
        except httpx.HTTPStatusError as e:
            if not is_not_found(e):
                raise
            v = None

        ctx.cached_fields[self.as_] = v

        # None is cached only with negative=True
        if v is not None or self.negative:
            self.cache.set(k, v)

        logger.debug("cache.miss", step=self.id, field=self.as_, stored=v is not None or self.negative)
        return "cache miss"


class Do(Step):
    """Run an arbitrary ``fn(ctx)``, sync or async."""

    def __init__(self, fn: Callable[[ExecuteInput], Any]) -> None:
        super().__init__()
        self.fn = fn

    async def perform_step(self, ctx: ExecuteInput) -> Any:
        return await maybe_await(self.fn(ctx))


class FanOut(Step):
    """Run nested steps once per element of an array, concurrently.

    ``on`` is either a literal list or a JSONPath over ``ctx.to_dict()``.
    Each element runs against ``ctx.fork(as_, element)``; results come back
    in input order. If any fork ends in an error the whole step fails.
    """

    def __init__(
        self,
        parent: Action | None,
        *,
        on: str | list[Any],
        as_: str,
        extensions: list[RequestExtension] | None = None,
    ) -> None:
        super().__init__()
        self.parent = parent
        self.on = on
        self.as_ = as_
        self.steps = Steps()
        self.request_extensions: list[RequestExtension] = list(extensions or [])

    def _values(self, ctx: ExecuteInput) -> list[Any]:
        if isinstance(self.on, list):
            return self.on

        found = find_path(self.on, ctx.to_dict())
        if len(found) > 1:
            values = found
        elif found:
            values = found[0]
        else:
            values = None

        if not isinstance(values, list):
            kind = "undefined" if not found else real_type_of(values)
            raise FanOutError(f"{self.on} is not an array, it is {indefinite_article(kind)} {kind}")
        return values

    async def perform_step(self, ctx: ExecuteInput) -> list[list[StepResult]]:
        self.steps.validate()
        values = self._values(ctx)

        logger.debug("fan_out.start", step=self.id, on=str(self.on), forks=len(values))

        results = await asyncio.gather(*(self.steps.execute(ctx.fork(self.as_, value)) for value in values))

        for index, fork_results in enumerate(results):
            last = fork_results[-1]
            if last.error is not None:
                raise FanOutError(
                    f"fan-out over {self.on} failed at element {index}: {last.error}",
                    cause=last.error,
                )

        return list(results)

    # -- fluent builders for the nested steps

    def do(self, fn: Callable[[ExecuteInput], Any]) -> FanOut:
        self.steps.push(Do(fn))
        return self

    def request(self, fn: RequestFn) -> FanOut:
        self.steps.push(Request(self.request_extensions, fn, self._observer()))
        return self

    def cached_request(self, *, as_: str, key, value: RequestFn, ttl: float, negative: bool = False) -> FanOut:
        self.steps.push(
            CachedRequest(
                self.request_extensions,
                key=key,
                value=value,
                as_=as_,
                ttl=ttl,
                negative=negative,
                on_response=self._observer(),
            )
        )
        return self

    def extend_request(self, *fns: RequestExtension) -> FanOut:
        self.request_extensions.extend(fns)
        return self

    def fan_in(self) -> Action | None:
        self.steps.validate()
        return self.parent

    def _observer(self) -> ResponseObserver | None:
        return self.parent._emit_response if self.parent is not None else None


# =============================================================================
# ACTION
# =============================================================================


class Action:
    """A fixed step pipeline for one partner action.

    Args:
        definition: What to build. ``None`` starts an empty pipeline (only
            MapInput) for use with the fluent builders.
        extend_request: Destination-level request extension, applied before
            any extension added later.
        on_response: Called with every HTTP response a request step sees.
    """

    def __init__(
        self,
        definition: ActionDefinition | None = None,
        extend_request: RequestExtension | None = None,
        on_response: ResponseObserver | None = None,
    ) -> None:
        self.definition = definition
        self.on_response = on_response
        self.steps = Steps()
        self.steps.push(MapInput())
        self.request_extensions: list[RequestExtension] = []
        self._autocomplete: dict[str, RequestFn] = {}

        if extend_request is not None:
            self.request_extensions.append(extend_request)

        if definition is not None:
            self._load_definition(definition)

        self.steps.validate()

    def _load_definition(self, definition: ActionDefinition) -> None:
        schema = definition.input_schema()
        if schema is not None:
            self.validate_payload(schema)

        for name, callback in definition.autocomplete_fields.items():
            self._autocomplete[name] = callback

        for name, cached in definition.cached_fields.items():
            self.cached_request(as_=name, key=cached.key, value=cached.value, ttl=cached.ttl, negative=cached.negative)

        if definition.perform is not None:
            self.request(definition.perform)

    def _emit_response(self, response: httpx.Response) -> None:
        if self.on_response is not None:
            self.on_response(response)

    # -- execution

    async def execute(self, ctx: ExecuteInput, *, raise_on_error: bool = True) -> list[StepResult]:
        """Run every step; raise the last result's error unless told not to."""
        results = await self.steps.execute(ctx)

        final = results[-1]
        if raise_on_error and final.error is not None:
            raise final.error

        return results

    async def execute_autocomplete(self, field: str, ctx: ExecuteInput) -> Any:
        """Run the lookup registered for ``field`` outside the pipeline."""
        callback = self._autocomplete.get(field)
        if callback is None:
            return {"data": [], "pagination": {}}

        step = Request(self.request_extensions, callback, self._emit_response)
        result = await step.call(ctx)
        if isinstance(result, httpx.Response):
            return result.json()
        return result

    # -- fluent builders

    def validate_payload(self, schema: dict[str, Any]) -> Action:
        self.steps.push(Validate("payload", schema))
        return self

    def validate_settings(self, schema: dict[str, Any]) -> Action:
        self.steps.push(Validate("settings", schema))
        return self

    def autocomplete(self, field: str, callback: RequestFn) -> Action:
        self._autocomplete[field] = callback
        return self

    def do(self, fn: Callable[[ExecuteInput], Any]) -> Action:
        self.steps.push(Do(fn))
        return self

    def request(self, fn: RequestFn) -> Action:
        self.steps.push(Request(self.request_extensions, fn, self._emit_response))
        return self

    def cached_request(self, *, as_: str, key, value: RequestFn, ttl: float, negative: bool = False) -> Action:
        self.steps.push(
            CachedRequest(
                self.request_extensions,
                key=key,
                value=value,
                as_=as_,
                ttl=ttl,
                negative=negative,
                on_response=self._emit_response,
            )
        )
        return self

    def fan_out(self, *, on: str | list[Any], as_: str) -> FanOut:
        step = FanOut(self, on=on, as_=as_, extensions=self.request_extensions)
        self.steps.push(step)
        return step

    def extend_request(self, *fns: RequestExtension) -> Action:
        self.request_extensions.extend(fns)
        return self


__all__ = [
    "Action",
    "ActionDefinition",
    "CachedField",
    "CachedRequest",
    "Do",
    "FanOut",
    "MapInput",
    "Request",
    "RequestExtension",
    "RequestFn",
    "Validate",
]
