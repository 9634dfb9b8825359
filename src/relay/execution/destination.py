"""Destination dispatcher.

A :class:`Destination` owns one :class:`Action` per action definition and
routes each incoming event to the actions its subscriptions select.

Manifesto:
    - **One task per subscription:** Subscriptions of one event run
      concurrently; results come back in subscription order.
    - **Stats always fire:** ``on_complete`` is called exactly once per
      subscription from a ``finally`` block, whatever happened.
    - **First failure aborts the batch:** Sibling subscriptions still in
      flight are cancelled and report ``state="pending"``; the error is
      re-raised with destination, action and subscription attached. The
      caller retries the whole event.

Architecture:
    ::

        on_event(event, settings, on_complete)
          get_subscriptions(settings)          object | JSON string | array
          get_destination_settings(settings)   everything else
          ┌─ task: _on_subscription(sub_1) ─┐
          ├─ task: _on_subscription(sub_2) ─┤  asyncio.gather
          └─ task: _on_subscription(sub_n) ─┘
                subscribe not a string / unparsable → "invalid subscription"
                predicate false                     → "not subscribed"
                else Action.execute(payload=event, mapping, settings)
          flatten results in subscription order

Examples:
    >>> destination = Destination(DestinationDefinition(name="Slack", actions={"postToChannel": post}))
    >>> results = await destination.on_event(
    ...     {"type": "track", "event": "Signed Up"},
    ...     {"subscription": {"subscribe": 'type = "track"', "partnerAction": "postToChannel",
    ...                       "mapping": {"text": {"@path": "$.event"}, "url": URL}}},
    ... )

Tags:
    destination, dispatcher, subscriptions, asyncio, relay
"""

from __future__ import annotations

import asyncio
import copy
import json
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from relay.core.errors import InvalidCredentialsError, RelayError, SubscriptionSyntaxError, UnsupportedActionError
from relay.core.logging import LogContext, get_logger
from relay.execution.action import Action, ActionDefinition, RequestExtension, Validate, maybe_await
from relay.execution.fields import InputField, fields_to_json_schema
from relay.execution.request_client import RequestClient, create_request_client
from relay.execution.step import ExecuteInput, StepResult
from relay.execution.subscriptions import FqlMatcher, SubscriptionMatcher

logger = get_logger(__name__)


@dataclass
class Authentication:
    """How a destination checks credentials.

    ``fields`` describe the settings the destination needs (they are also
    validated before ``test_authentication`` runs).
    """

    scheme: str = "custom"
    fields: dict[str, InputField] = field(default_factory=dict)
    test_authentication: Callable[[RequestClient, dict[str, Any]], Any] | None = None


@dataclass
class DestinationDefinition:
    name: str
    actions: dict[str, ActionDefinition]
    extend_request: RequestExtension | None = None
    authentication: Authentication | None = None
    presets: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class SubscriptionStats:
    """Telemetry for one subscription of one event."""

    duration: float
    destination: str
    action: str | None
    subscribe: Any
    state: str
    input: dict[str, Any]
    output: list[StepResult] | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration": self.duration,
            "destination": self.destination,
            "action": self.action,
            "subscribe": self.subscribe,
            "state": self.state,
            "input": self.input,
            "output": [r.to_dict() for r in self.output] if self.output is not None else None,
        }


def get_subscriptions(settings: dict[str, Any]) -> list[Any]:
    """Normalise ``subscription`` / ``subscriptions`` into a list."""
    subscription = settings.get("subscription")
    subscriptions = settings.get("subscriptions")

    if subscription:
        if isinstance(subscription, str):
            subscription = _loads(subscription)
        return [subscription] if isinstance(subscription, dict) else []

    if isinstance(subscriptions, str):
        subscriptions = _loads(subscriptions)
    if isinstance(subscriptions, dict):
        return [subscriptions]
    if isinstance(subscriptions, list):
        return subscriptions
    return []


def _loads(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("subscription.unparseable", length=len(raw))
        return None


def get_destination_settings(settings: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in settings.items() if k not in ("subscription", "subscriptions")}


class Destination:
    """Runtime for one destination definition.

    Args:
        definition: The destination's name, actions and auth config.
        matcher: Subscription predicate, :class:`FqlMatcher` by default.
    """

    def __init__(self, definition: DestinationDefinition, matcher: SubscriptionMatcher | None = None) -> None:
        self.definition = definition
        self.name = definition.name
        self.extend_request = definition.extend_request
        self.authentication = definition.authentication
        self.presets = list(definition.presets)
        self.matcher = matcher or FqlMatcher()
        self.responses: list[httpx.Response] = []

        self.settings_schema: dict[str, Any] | None = None
        if self.authentication is not None and self.authentication.fields:
            self.settings_schema = fields_to_json_schema(self.authentication.fields)

        self.actions: dict[str, Action] = {
            slug: Action(action_definition, self.extend_request, on_response=self.responses.append)
            for slug, action_definition in definition.actions.items()
        }

    # -- authentication

    async def test_authentication(self, settings: dict[str, Any]) -> None:
        """Validate ``settings`` and ask the partner whether they work.

        Raises:
            PayloadValidationError: settings do not match the auth fields.
            InvalidCredentialsError: the partner rejected them.
        """
        ctx = ExecuteInput(settings=copy.deepcopy(settings), payload={})

        if self.settings_schema is not None:
            await Validate("settings", self.settings_schema).perform_step(ctx)

        if self.authentication is None or self.authentication.test_authentication is None:
            return

        options = self.extend_request(ctx) if self.extend_request is not None else None
        request = create_request_client(options)

        try:
            await maybe_await(self.authentication.test_authentication(request, {"settings": ctx.settings}))
        except Exception as e:
            logger.warning("auth.failed", destination=self.name, error_type=type(e).__name__, error=str(e))
            raise InvalidCredentialsError(cause=e).with_context(destination=self.name) from e

    # -- dispatch

    async def execute_action(
        self,
        slug: str,
        *,
        event: dict[str, Any],
        mapping: dict[str, Any] | None = None,
        settings: dict[str, Any] | None = None,
    ) -> list[StepResult]:
        """Run one action directly, bypassing subscription matching."""
        action = self.actions.get(slug)
        if action is None:
            raise UnsupportedActionError(slug).with_context(destination=self.name)

        ctx = ExecuteInput(
            payload=copy.deepcopy(event),
            mapping=mapping or {},
            settings=copy.deepcopy(settings or {}),
        )
        return await action.execute(ctx)

    async def on_event(
        self,
        event: dict[str, Any],
        settings: dict[str, Any],
        on_complete: Callable[[SubscriptionStats], Any] | None = None,
    ) -> list[StepResult]:
        """Run every subscription in ``settings`` against ``event``."""
        subscriptions = get_subscriptions(settings)
        destination_settings = get_destination_settings(settings)

        tasks = [
            asyncio.create_task(self._on_subscription(subscription, event, destination_settings, on_complete))
            for subscription in subscriptions
        ]
        if not tasks:
            return []

        try:
            per_subscription = await asyncio.gather(*tasks)
        except Exception as e:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.warning(
                "destination.batch_aborted",
                destination=self.name,
                cancelled=len(pending),
                error_type=type(e).__name__,
            )
            raise

        return [result for results in per_subscription for result in results]

    async def _on_subscription(
        self,
        subscription: Any,
        event: dict[str, Any],
        settings: dict[str, Any],
        on_complete: Callable[[SubscriptionStats], Any] | None,
    ) -> list[StepResult]:
        if not isinstance(subscription, dict):
            subscription = {}

        started = time.perf_counter()
        action_slug = subscription.get("partnerAction")
        subscribe = subscription.get("subscribe")
        label = subscription.get("name") or subscribe
        mapping = subscription.get("mapping") or {}

        state = "pending"
        results: list[StepResult] | None = None

        with LogContext(destination=self.name, action=action_slug):
            try:
                parsed = self._parse(subscribe)
                if parsed is None:
                    state = "skipped"
                    results = [StepResult(output="invalid subscription")]
                    return results

                if not self.matcher.matches(parsed, event):
                    state = "skipped"
                    results = [StepResult(output="not subscribed")]
                    return results

                results = await self.execute_action(action_slug, event=event, mapping=mapping, settings=settings)
                state = "done"
                return results

            except Exception as e:
                state = "errored"
                results = [StepResult(error=e)]
                if isinstance(e, RelayError):
                    e.with_context(destination=self.name, action=action_slug, subscription=label)
                e.add_note(f"destination={self.name!r} action={action_slug!r} subscription={label!r}")
                raise

            finally:
                stats = SubscriptionStats(
                    duration=(time.perf_counter() - started) * 1000,
                    destination=self.name,
                    action=action_slug,
                    subscribe=subscribe,
                    state=state,
                    input={"event": event, "mapping": mapping, "settings": settings},
                    output=results,
                )
                self._log_stats(stats)
                if on_complete is not None:
                    on_complete(stats)

    def _parse(self, subscribe: Any) -> Any:
        if not isinstance(subscribe, str):
            return None
        try:
            return self.matcher.parse(subscribe)
        except SubscriptionSyntaxError as e:
            logger.debug("subscription.invalid", error=str(e))
            return None

    def _log_stats(self, stats: SubscriptionStats) -> None:
        event_name = {
            "done": "subscription.complete",
            "skipped": "subscription.skipped",
            "errored": "subscription.errored",
        }.get(stats.state, "subscription.cancelled")
        log = logger.warning if stats.state == "errored" else logger.debug
        log(event_name, state=stats.state, duration_ms=round(stats.duration, 3))


__all__ = [
    "Authentication",
    "Destination",
    "DestinationDefinition",
    "SubscriptionStats",
    "get_destination_settings",
    "get_subscriptions",
]
