"""
Relay logging - structured logging for the action engine.

Manifesto:
    A single event can fan out into several subscriptions, each running a
    handful of steps and HTTP calls. A failure log line is only useful if it
    already names the destination, the action and the step, so relay binds
    those as contextvars and every logger picks them up.

Architecture:
    ::

        configure_logging(level, json_format, service)
            │
            ├── _processor_chain()
            │     timestamp → contextvars → level/name → service.name
            │     (+ ECS renames and exc_info formatting in JSON mode)
            │
            └── renderer: JSONRenderer (pipes, CI) | ConsoleRenderer (tty)

        LogContext(destination=..., action=...)   # per subscription task

Examples:
    >>> from relay.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> get_logger(__name__).info("subscription.complete", action="postToChannel")

Tags:
    logging, structlog, contextvars, relay
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

#: ECS names for the keys structlog produces.
ECS_RENAMES = {"timestamp": "@timestamp", "level": "log.level"}


class ServiceName:
    """Processor stamping ``service.name`` on every record."""

    def __init__(self, service: str):
        self.service = service

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", self.service)
        return event_dict


def rename_ecs_keys(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key, ecs_key in ECS_RENAMES.items():
        if key in event_dict:
            event_dict[ecs_key] = event_dict.pop(key)
    return event_dict


def _processor_chain(json_format: bool, service: str, add_timestamp: bool) -> list[Processor]:
    chain: list[Processor] = []
    if add_timestamp:
        chain.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    chain += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        ServiceName(service),
    ]
    if json_format:
        chain += [rename_ecs_keys, structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return chain


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "relay",
    add_timestamp: bool = True,
) -> None:
    """Point structlog (and stdlib ``logging``) at stderr.

    ``json_format=None`` picks JSON whenever stdout is not a terminal, which
    keeps ``relay transform ... | jq`` pipelines readable.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")
    if json_format is None:
        json_format = not sys.stdout.isatty()

    structlog.configure(
        processors=_processor_chain(json_format, service, add_timestamp),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    # httpx and friends log through the stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def bind_context(**values: Any) -> None:
    """Attach ``values`` to every log line of the current task."""
    structlog.contextvars.bind_contextvars(**values)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind log context for the duration of a ``with`` or ``async with`` block.

    Leaving the block restores whatever the keys held before, so nested
    contexts behave. Each asyncio task runs on its own copy of the
    contextvars, which keeps one subscription's context out of its siblings.

    Example:
        async with LogContext(destination="Slack", action="postToChannel"):
            logger.info("subscription.start")
    """

    def __init__(self, **values: Any):
        self.values = values
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self.values)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


__all__ = [
    "LogContext",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
]
