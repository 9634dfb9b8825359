"""Subscription predicates.

A subscription's ``subscribe`` string decides whether an event should reach
its action. The dispatcher only depends on the :class:`SubscriptionMatcher`
protocol; :class:`FqlMatcher` is the default implementation.

Grammar (FQL subset)::

    expr       := or_expr
    or_expr    := and_expr ("or" and_expr)*
    and_expr   := not_expr ("and" not_expr)*
    not_expr   := "not" not_expr | primary
    primary    := "(" expr ")" | call | comparison
    call       := ("contains" | "match") "(" field "," literal ")"
    comparison := operand (("=" | "!=" | "<" | "<=" | ">" | ">=") operand)?
    operand    := field | literal
    field      := identifier ("." identifier)*   or a `backtick quoted` name
    literal    := "string" | number | true | false | null

A bare field is true when it exists and is not null.

Examples:
    >>> matcher = FqlMatcher()
    >>> parsed = matcher.parse('type = "track" and properties.total > 10')
    >>> matcher.matches(parsed, {"type": "track", "properties": {"total": 12}})
    True

Tags:
    subscriptions, fql, predicate, relay
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from relay.core.errors import SubscriptionSyntaxError


@runtime_checkable
class SubscriptionMatcher(Protocol):
    """Parse a subscribe expression once, evaluate it per event."""

    def parse(self, expression: str) -> Any: ...

    def matches(self, parsed: Any, event: dict[str, Any]) -> bool: ...


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<op>!=|<=|>=|=|<|>)
  | (?P<punct>[(),])
  | (?P<quoted>`[^`]+`)
  | (?P<name>[A-Za-z_$][\w$]*(?:\.(?:[A-Za-z_$][\w$]*|`[^`]+`))*)
    """,
    re.VERBOSE,
)

_KEYWORDS = {"and", "or", "not", "true", "false", "null"}
_FUNCTIONS = {"contains", "match"}


@dataclass(frozen=True)
class _Token:
    kind: str
    value: str
    pos: int


def _tokenize(expression: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(expression):
        m = _TOKEN_RE.match(expression, pos)
        if m is None:
            raise SubscriptionSyntaxError(expression, f"unexpected character {expression[pos]!r} at {pos}")
        kind = m.lastgroup
        if kind != "ws":
            value = m.group()
            if kind == "name" and value in _KEYWORDS:
                kind = value
            tokens.append(_Token(kind, value, pos))
        pos = m.end()
    return tokens


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Field:
    path: tuple[str, ...]


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Compare:
    op: str
    left: Field | Literal
    right: Field | Literal


@dataclass(frozen=True)
class Call:
    name: str
    field: Field
    argument: Literal


@dataclass(frozen=True)
class Exists:
    field: Field


@dataclass(frozen=True)
class Not:
    operand: Any


@dataclass(frozen=True)
class BoolOp:
    op: str
    operands: tuple[Any, ...]


def _field_from(value: str) -> Field:
    parts = re.findall(r"`([^`]+)`|([^.`]+)", value)
    return Field(tuple(quoted or plain for quoted, plain in parts))


def _unquote(raw: str) -> str:
    body = raw[1:-1]
    return re.sub(r"\\(.)", r"\1", body)


class _Parser:
    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.i = 0

    def error(self, message: str) -> SubscriptionSyntaxError:
        return SubscriptionSyntaxError(self.expression, message)

    def peek(self) -> _Token | None:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def take(self, kind: str | None = None) -> _Token:
        token = self.peek()
        if token is None:
            raise self.error("unexpected end of expression")
        if kind is not None and token.kind != kind:
            raise self.error(f"expected {kind} at {token.pos}, got {token.value!r}")
        self.i += 1
        return token

    def parse(self) -> Any:
        if not self.tokens:
            raise self.error("expression is empty")
        node = self.or_expr()
        if self.peek() is not None:
            token = self.peek()
            raise self.error(f"unexpected {token.value!r} at {token.pos}")
        return node

    def or_expr(self) -> Any:
        operands = [self.and_expr()]
        while self.peek() is not None and self.peek().kind == "or":
            self.take()
            operands.append(self.and_expr())
        return operands[0] if len(operands) == 1 else BoolOp("or", tuple(operands))

    def and_expr(self) -> Any:
        operands = [self.not_expr()]
        while self.peek() is not None and self.peek().kind == "and":
            self.take()
            operands.append(self.not_expr())
        return operands[0] if len(operands) == 1 else BoolOp("and", tuple(operands))

    def not_expr(self) -> Any:
        token = self.peek()
        if token is not None and token.kind == "not":
            self.take()
            return Not(self.not_expr())
        return self.primary()

    def primary(self) -> Any:
        token = self.peek()
        if token is None:
            raise self.error("unexpected end of expression")

        if token.kind == "punct" and token.value == "(":
            self.take()
            node = self.or_expr()
            closing = self.take("punct")
            if closing.value != ")":
                raise self.error(f"expected ')' at {closing.pos}")
            return node

        if token.kind == "name" and token.value in _FUNCTIONS:
            nxt = self.tokens[self.i + 1] if self.i + 1 < len(self.tokens) else None
            if nxt is not None and nxt.value == "(":
                return self.call()

        left = self.operand()
        token = self.peek()
        if token is not None and token.kind == "op":
            self.take()
            return Compare(token.value, left, self.operand())

        if not isinstance(left, Field):
            raise self.error(f"a literal on its own is not a condition ({left.value!r})")
        return Exists(left)

    def call(self) -> Call:
        name = self.take("name").value
        self.take("punct")
        target = self.operand()
        if not isinstance(target, Field):
            raise self.error(f"{name}() expects a field as its first argument")
        comma = self.take("punct")
        if comma.value != ",":
            raise self.error(f"expected ',' at {comma.pos}")
        argument = self.operand()
        if not isinstance(argument, Literal):
            raise self.error(f"{name}() expects a literal as its second argument")
        closing = self.take("punct")
        if closing.value != ")":
            raise self.error(f"expected ')' at {closing.pos}")
        return Call(name, target, argument)

    def operand(self) -> Field | Literal:
        token = self.take()
        if token.kind == "string":
            return Literal(_unquote(token.value))
        if token.kind == "number":
            return Literal(float(token.value) if "." in token.value else int(token.value))
        if token.kind in ("true", "false"):
            return Literal(token.kind == "true")
        if token.kind == "null":
            return Literal(None)
        if token.kind == "name":
            return _field_from(token.value)
        if token.kind == "quoted":
            return Field((token.value[1:-1],))
        raise self.error(f"unexpected {token.value!r} at {token.pos}")


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

_MISSING = object()


def _lookup(event: Any, path: tuple[str, ...]) -> Any:
    current = event
    for part in path:
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def _value(operand: Field | Literal, event: dict[str, Any]) -> Any:
    if isinstance(operand, Literal):
        return operand.value
    return _lookup(event, operand.path)


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "=":
        return left is not _MISSING and left == right
    if op == "!=":
        return left is _MISSING or left != right

    if left is _MISSING or right is _MISSING or isinstance(left, bool) or isinstance(right, bool):
        return False
    if not (isinstance(left, (int, float)) and isinstance(right, (int, float))):
        return False
    return {
        "<": left < right,
        "<=": left <= right,
        ">": left > right,
        ">=": left >= right,
    }[op]


def _evaluate(node: Any, event: dict[str, Any]) -> bool:
    if isinstance(node, BoolOp):
        if node.op == "and":
            return all(_evaluate(n, event) for n in node.operands)
        return any(_evaluate(n, event) for n in node.operands)
    if isinstance(node, Not):
        return not _evaluate(node.operand, event)
    if isinstance(node, Exists):
        value = _lookup(event, node.field.path)
        return value is not _MISSING and value is not None
    if isinstance(node, Compare):
        return _compare(node.op, _value(node.left, event), _value(node.right, event))
    if isinstance(node, Call):
        value = _lookup(event, node.field.path)
        if not isinstance(value, str) or not isinstance(node.argument.value, str):
            return False
        if node.name == "contains":
            return node.argument.value in value
        return fnmatch.fnmatchcase(value, node.argument.value)
    raise TypeError(f"unknown node {node!r}")


class FqlMatcher:
    """Default :class:`SubscriptionMatcher` for FQL-style expressions."""

    def parse(self, expression: str) -> Any:
        if not isinstance(expression, str):
            raise SubscriptionSyntaxError(expression, "expression must be a string")
        return _Parser(expression).parse()

    def matches(self, parsed: Any, event: dict[str, Any]) -> bool:
        return _evaluate(parsed, event)


__all__ = [
    "FqlMatcher",
    "SubscriptionMatcher",
]
