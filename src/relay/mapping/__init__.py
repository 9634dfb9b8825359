"""
relay.mapping - the JSON-to-JSON transform engine.

Mappings are JSON templates whose single-key ``@``-objects are directives.
Importing this package registers every built-in directive.

Examples:
    >>> from relay.mapping import transform
    >>> transform({"to": {"@lowercase": {"@path": "$.email"}}}, {"email": "A@B.CO"})
    {'to': 'a@b.co'}
"""

from relay.mapping import directives  # noqa: F401  (registers built-ins)
from relay.mapping.directives import find_path
from relay.mapping.resolver import (
    Directive,
    get_directive,
    register_directive,
    registered_directives,
    resolve,
)
from relay.mapping.transform import transform
from relay.mapping.types import (
    DEFAULT_OPTIONS,
    UNDEFINED,
    MappingOptions,
    contains_directive,
    remove_undefined,
)
from relay.mapping.validate import validate_mapping

__all__ = [
    "Directive",
    "get_directive",
    "register_directive",
    "registered_directives",
    "resolve",
    "transform",
    "validate_mapping",
    "find_path",
    "DEFAULT_OPTIONS",
    "UNDEFINED",
    "MappingOptions",
    "contains_directive",
    "remove_undefined",
]
