"""
relay.core - shared primitives for the action engine.

Errors, structured logging, settings, the bounded TTL cache, and the
step-id generator. Nothing here knows about mappings or actions.
"""

from relay.core.cache import InMemoryCache
from relay.core.errors import (
    ActionError,
    DirectiveError,
    ErrorCategory,
    ErrorContext,
    FanOutError,
    FieldError,
    InvalidCredentialsError,
    MappingError,
    MappingValidationError,
    PayloadValidationError,
    PipelineConfigError,
    PipelineError,
    RelayError,
    SubscriptionSyntaxError,
    UnknownDirectiveError,
    UnsupportedActionError,
    ValidationError,
    categorize_error,
    is_retryable,
)
from relay.core.ids import next_step_id
from relay.core.logging import LogContext, configure_logging, get_logger
from relay.core.settings import RelaySettings, get_settings

__all__ = [
    "InMemoryCache",
    "ActionError",
    "DirectiveError",
    "ErrorCategory",
    "ErrorContext",
    "FanOutError",
    "FieldError",
    "InvalidCredentialsError",
    "MappingError",
    "MappingValidationError",
    "PayloadValidationError",
    "PipelineConfigError",
    "PipelineError",
    "RelayError",
    "SubscriptionSyntaxError",
    "UnknownDirectiveError",
    "UnsupportedActionError",
    "ValidationError",
    "categorize_error",
    "is_retryable",
    "next_step_id",
    "LogContext",
    "configure_logging",
    "get_logger",
    "RelaySettings",
    "get_settings",
]
