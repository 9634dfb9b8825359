"""
Structured error types for the relay engine.

Every failure the engine can produce maps onto one typed error carrying a
category, a retry hint, and an :class:`ErrorContext` naming the destination,
action, and subscription involved. Callers of the dispatcher get enough
metadata to attribute blame without parsing messages.

Manifesto:
    - **Typed taxonomy:** Mapping, validation, pipeline, action, auth, and
      subscription errors are distinct classes
    - **Explicit retry semantics:** Each error type knows if a retry helps
    - **Rich context:** Errors carry destination/action/subscription metadata
    - **Error chaining:** The original exception survives as ``cause``

Architecture:
    ::

        RelayError  (category, retryable, context, cause)
        ├── MappingError            (MAPPING)
        │   ├── MappingValidationError   aggregate structural lint
        │   ├── DirectiveError           bad argument / bad template
        │   └── UnknownDirectiveError    broken action definition
        ├── ValidationError         (VALIDATION)
        │   └── PayloadValidationError   aggregate field errors
        ├── PipelineError           (PIPELINE)
        │   ├── PipelineConfigError      "no steps defined"
        │   └── FanOutError
        ├── ActionError             (ACTION)
        │   └── UnsupportedActionError   ignored, never retried
        ├── AuthError               (AUTH)
        │   └── InvalidCredentialsError
        └── SubscriptionSyntaxError (SUBSCRIPTION)

    Transport failures stay ``httpx.HTTPError`` instances; the helpers at the
    bottom of this module classify them alongside ``RelayError``.

Examples:
    >>> err = UnsupportedActionError("postToChannel")
    >>> err.ignored, err.retryable
    (True, False)
    >>> err.with_context(destination="Slack").context.destination
    'Slack'

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context, relay
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    MAPPING = "MAPPING"            # Malformed directives, bad directive args
    VALIDATION = "VALIDATION"      # Payload/settings schema violations
    NETWORK = "NETWORK"            # Connection, timeout, DNS
    HTTP = "HTTP"                  # Non-2xx responses from partner APIs
    PIPELINE = "PIPELINE"          # Step sequencing and fan-out failures
    ACTION = "ACTION"              # Unknown or unsupported actions
    AUTH = "AUTH"                  # Credential checks
    SUBSCRIPTION = "SUBSCRIPTION"  # Malformed subscribe expressions
    CONFIG = "CONFIG"              # Missing/invalid settings
    INTERNAL = "INTERNAL"          # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only the fields that are set end up in :meth:`to_dict`; anything that is
    not a named field goes into ``metadata``.
    """

    destination: str | None = None
    action: str | None = None
    subscription: str | None = None
    step: str | None = None

    url: str | None = None
    http_status: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["destination", "action", "subscription", "step", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RelayError(Exception):
    """
    Base exception for all relay errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    raising sites only pass what differs from the defaults.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RelayError:
        """
        Add context to this error (fluent API).

        Usage:
            raise UnsupportedActionError(name).with_context(destination="Slack")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# MAPPING ERRORS
# =============================================================================


class MappingError(RelayError):
    """Structural problem with a mapping or its payload. Never retryable."""

    default_category = ErrorCategory.MAPPING


class MappingValidationError(MappingError):
    """
    Aggregate result of the structural lint over a mapping.

    ``problems`` holds one message per offending location, already prefixed
    with the JSON-pointer-ish path of that location.
    """

    def __init__(self, problems: list[str], **kwargs: Any):
        self.problems = list(problems)
        super().__init__(" ".join(self.problems), **kwargs)

    def __iter__(self):
        return iter(self.problems)

    def __len__(self) -> int:
        return len(self.problems)


class DirectiveError(MappingError):
    """A directive received an argument of the wrong shape."""

    def __init__(self, directive: str, message: str, **kwargs: Any):
        self.directive = directive
        super().__init__(f"{directive}: {message}", **kwargs)


class UnknownDirectiveError(MappingError):
    """The mapping names a directive that is not registered."""

    def __init__(self, name: str, **kwargs: Any):
        self.directive = name
        super().__init__(f"{name} is not a valid directive", **kwargs)


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(RelayError):
    """Data validation error. Never retryable, the data must change."""

    default_category = ErrorCategory.VALIDATION


@dataclass(frozen=True)
class FieldError:
    """One schema violation: where it happened and what went wrong."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class PayloadValidationError(ValidationError):
    """Every field error from one validation run, reported together."""

    def __init__(self, errors: list[FieldError], *, field: str = "payload", **kwargs: Any):
        self.errors = list(errors)
        self.field = field
        super().__init__(", ".join(str(e) for e in self.errors), **kwargs)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["field"] = self.field
        result["errors"] = [{"path": e.path, "message": e.message} for e in self.errors]
        return result


# =============================================================================
# PIPELINE ERRORS
# =============================================================================


class PipelineError(RelayError):
    """Step pipeline construction or execution error."""

    default_category = ErrorCategory.PIPELINE


class PipelineConfigError(PipelineError):
    """The pipeline was assembled incorrectly (e.g. no steps)."""

    pass


class FanOutError(PipelineError):
    """Fan-out could not resolve its array, or one of its forks failed."""

    pass


# =============================================================================
# ACTION / AUTH / SUBSCRIPTION ERRORS
# =============================================================================


class ActionError(RelayError):
    """Problem locating or running a partner action."""

    default_category = ErrorCategory.ACTION


class UnsupportedActionError(ActionError):
    """
    Dispatch to an action the destination does not define.

    Marked ``ignored`` so that upstream consumers can drop the event
    instead of retrying it.
    """

    def __init__(self, action: str, **kwargs: Any):
        self.action = action
        self.ignored = True
        self.status = "UNSUPPORTED_EVENT_TYPE"
        self.retry = False
        super().__init__(f'"{action}" is not a supported action', retryable=False, **kwargs)


class AuthError(RelayError):
    """Authentication or authorization error."""

    default_category = ErrorCategory.AUTH


class InvalidCredentialsError(AuthError):
    """The destination rejected the supplied credentials."""

    def __init__(self, message: str = "Credentials are invalid", **kwargs: Any):
        super().__init__(message, **kwargs)


class SubscriptionSyntaxError(RelayError):
    """A subscribe expression could not be parsed."""

    default_category = ErrorCategory.SUBSCRIPTION

    def __init__(self, expression: Any, message: str, **kwargs: Any):
        self.expression = expression
        super().__init__(f"invalid subscription {expression!r}: {message}", **kwargs)


class ConfigError(RelayError):
    """Configuration error."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def _http_status(error: BaseException) -> int | None:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def is_retryable(error: BaseException) -> bool:
    """Check if an error is worth retrying."""
    if isinstance(error, RelayError):
        return error.retryable
    status = _http_status(error)
    if status is not None:
        return status == 429 or status >= 500
    return isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError))


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, RelayError):
        return error.category
    if isinstance(error, httpx.HTTPStatusError):
        return ErrorCategory.HTTP
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (KeyError, AttributeError)):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


def is_not_found(error: BaseException) -> bool:
    """True when the error carries an HTTP 404 response."""
    return _http_status(error) == 404


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RelayError",
    "MappingError",
    "MappingValidationError",
    "DirectiveError",
    "UnknownDirectiveError",
    "ValidationError",
    "FieldError",
    "PayloadValidationError",
    "PipelineError",
    "PipelineConfigError",
    "FanOutError",
    "ActionError",
    "UnsupportedActionError",
    "AuthError",
    "InvalidCredentialsError",
    "SubscriptionSyntaxError",
    "ConfigError",
    "is_retryable",
    "categorize_error",
    "is_not_found",
]
