"""
relay - an action execution engine for event destinations.

An incoming event is matched against a destination's subscriptions; each
match runs one partner action: map the event with a declarative mapping,
validate it, fetch cached fields, and call the partner API.

Sub-packages:
    relay.core          errors, logging, settings, cache
    relay.mapping       directives and ``transform``
    relay.execution     steps, actions, destinations
    relay.destinations  bundled destination definitions
    relay.cli           ``relay`` command line
"""

from relay.execution import (
    Action,
    ActionDefinition,
    CachedField,
    Destination,
    DestinationDefinition,
    ExecuteInput,
    StepResult,
)
from relay.mapping import UNDEFINED, MappingOptions, resolve, transform

__version__ = "0.1.0"

__all__ = [
    "Action",
    "ActionDefinition",
    "CachedField",
    "Destination",
    "DestinationDefinition",
    "ExecuteInput",
    "StepResult",
    "UNDEFINED",
    "MappingOptions",
    "resolve",
    "transform",
]
