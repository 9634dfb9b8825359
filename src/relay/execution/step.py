"""Step pipeline primitives.

A :class:`Step` is one unit of work in an action; :class:`Steps` runs a list
of them in order against a shared, mutable :class:`ExecuteInput`.

Manifesto:
    - **Uniform results:** Every step produces a :class:`StepResult`, never
      an exception. Errors are data until the action decides to raise.
    - **Fixed order:** Steps run in the order they were pushed and a step
      never starts before the previous one settled.
    - **Short-circuit:** The first failing step ends the pipeline. Earlier
      results are kept so callers can see how far it got.
    - **Scoped mutation:** ``ctx`` is the only state shared between steps.

Architecture:
    ::

        Steps.execute(ctx)
          for step in steps:
              result = await step.execute(ctx)   # never raises
              results.append(result)
              if result.error: break             # pipeline.short_circuit
          return results

        Step.execute(ctx)
          started_at ─▶ perform_step(ctx) ─▶ finished_at (always)

Examples:
    >>> class Hello(Step):
    ...     async def perform_step(self, ctx):
    ...         return "hello"
    >>> steps = Steps()
    >>> steps.push(Hello())
    >>> results = await steps.execute(ExecuteInput(payload={}))
    >>> results[0].output
    'hello'

Tags:
    pipeline, step, short-circuit, relay
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from relay.core.errors import PipelineConfigError
from relay.core.ids import next_step_id
from relay.core.logging import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class StepResult:
    """Outcome of one step. ``output`` is ``None`` whenever ``error`` is set."""

    step: str | None = None
    output: Any = None
    error: BaseException | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def duration_ms(self) -> float | None:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds() * 1000
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging / CLI output."""
        return {
            "step": self.step,
            "output": self.output,
            "error": str(self.error) if self.error is not None else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
        }


@dataclass
class ExecuteInput:
    """The mutable context threaded through one pipeline run.

    .. code-block:: text

        ExecuteInput
        ├── .settings       → destination settings (may hold directives)
        ├── .payload        → the event, then the mapped payload
        ├── .mapping        → subscription mapping, if any
        ├── .cached_fields  → values filled by cached-request steps
        ├── .page           → autocomplete pagination cursor
        └── .bindings       → fan-out variables (``as`` name → element)
    """

    settings: dict[str, Any] = field(default_factory=dict)
    payload: Any = field(default_factory=dict)
    mapping: dict[str, Any] | None = None
    cached_fields: dict[str, Any] = field(default_factory=dict)
    page: str | None = None
    bindings: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, name: str) -> Any:
        """Read a fan-out binding, e.g. ``ctx["channel"]``."""
        return self.bindings[name]

    def to_dict(self) -> dict[str, Any]:
        """JSON view of the context used by fan-out path lookups."""
        view: dict[str, Any] = {
            "settings": self.settings,
            "payload": self.payload,
            "mapping": self.mapping,
            "cachedFields": self.cached_fields,
        }
        view.update(self.bindings)
        return view

    def fork(self, name: str, value: Any) -> ExecuteInput:
        """Shallow copy with ``name`` bound to ``value``.

        The fork gets its own ``bindings`` and ``cached_fields`` dicts, so
        writes from one fan-out branch never show up in a sibling.
        """
        forked = copy.copy(self)
        forked.bindings = {**self.bindings, name: value}
        forked.cached_fields = dict(self.cached_fields)
        return forked


class Step:
    """Base class for all pipeline steps.

    Subclasses override :meth:`perform_step`; :meth:`execute` turns its
    return value or exception into a :class:`StepResult`.
    """

    def __init__(self) -> None:
        self.id = next_step_id(self.kind)

    @property
    def kind(self) -> str:
        return type(self).__name__

    async def perform_step(self, ctx: ExecuteInput) -> Any:
        return None

    async def execute(self, ctx: ExecuteInput) -> StepResult:
        started_at = utcnow()
        output: Any = None
        error: BaseException | None = None

        try:
            output = await self.perform_step(ctx)
        except Exception as e:
            error = e
            logger.debug("step.failed", step=self.id, error_type=type(e).__name__, error=str(e))
        finally:
            finished_at = utcnow()

        return StepResult(
            step=self.id,
            output=output,
            error=error,
            started_at=started_at,
            finished_at=finished_at,
        )

    def __repr__(self) -> str:
        return f"<{self.kind} {self.id}>"


class Steps:
    """An ordered list of steps executed one after another."""

    def __init__(self, steps: list[Step] | None = None) -> None:
        self.steps: list[Step] = list(steps or [])

    def push(self, step: Step) -> None:
        self.steps.append(step)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def validate(self) -> None:
        if not self.steps:
            raise PipelineConfigError("no steps defined")

    async def execute(self, ctx: ExecuteInput) -> list[StepResult]:
        self.validate()

        results: list[StepResult] = []
        for step in self.steps:
            result = await step.execute(ctx)
            results.append(result)

            if result.error is not None:
                logger.debug(
                    "pipeline.short_circuit",
                    step=step.id,
                    completed=len(results) - 1,
                    skipped=len(self.steps) - len(results),
                )
                break

        return results


__all__ = [
    "ExecuteInput",
    "Step",
    "StepResult",
    "Steps",
    "utcnow",
]
