"""
relay.destinations - bundled destination definitions.

``get_destination`` accepts a bundled slug (``"slack"``) or a
``"package.module:attribute"`` reference to a :class:`DestinationDefinition`
defined elsewhere.
"""

from __future__ import annotations

import importlib

from relay.core.errors import ConfigError
from relay.destinations import slack
from relay.execution.destination import Destination, DestinationDefinition

DESTINATIONS: dict[str, DestinationDefinition] = {
    "slack": slack.destination,
}


def load_definition(reference: str) -> DestinationDefinition:
    """Resolve a slug or ``module:attribute`` reference to a definition."""
    if reference in DESTINATIONS:
        return DESTINATIONS[reference]

    if ":" not in reference:
        raise ConfigError(f"Destination not found: {reference!r}")

    module_name, _, attribute = reference.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import {module_name!r}", cause=e) from e

    definition = getattr(module, attribute, None)
    if not isinstance(definition, DestinationDefinition):
        raise ConfigError(f"{reference!r} is not a DestinationDefinition")
    return definition


def get_destination(reference: str) -> Destination:
    return Destination(load_definition(reference))


__all__ = ["DESTINATIONS", "get_destination", "load_definition"]
