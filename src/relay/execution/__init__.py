"""
relay.execution - step pipelines, actions, and the destination dispatcher.

Modules:
    step            Step / Steps / StepResult / ExecuteInput
    request_client  httpx-backed client handed to action callbacks
    validation      JSON Schema with defaults and coercion
    fields          field declarations → JSON Schema
    action          Action runtime (map, validate, cache, request, fan-out)
    subscriptions   subscribe-expression matching
    destination     per-event dispatch over subscriptions
"""

from relay.execution.action import (
    Action,
    ActionDefinition,
    CachedField,
    CachedRequest,
    Do,
    FanOut,
    MapInput,
    Request,
    Validate,
)
from relay.execution.destination import (
    Authentication,
    Destination,
    DestinationDefinition,
    SubscriptionStats,
    get_destination_settings,
    get_subscriptions,
)
from relay.execution.fields import fields_to_json_schema
from relay.execution.request_client import RequestClient, RequestOptions, create_request_client
from relay.execution.step import ExecuteInput, Step, StepResult, Steps
from relay.execution.subscriptions import FqlMatcher, SubscriptionMatcher
from relay.execution.validation import SchemaValidator, compile_schema

__all__ = [
    "Action",
    "ActionDefinition",
    "CachedField",
    "CachedRequest",
    "Do",
    "FanOut",
    "MapInput",
    "Request",
    "Validate",
    "Authentication",
    "Destination",
    "DestinationDefinition",
    "SubscriptionStats",
    "get_destination_settings",
    "get_subscriptions",
    "fields_to_json_schema",
    "RequestClient",
    "RequestOptions",
    "create_request_client",
    "ExecuteInput",
    "Step",
    "StepResult",
    "Steps",
    "FqlMatcher",
    "SubscriptionMatcher",
    "SchemaValidator",
    "compile_schema",
]
