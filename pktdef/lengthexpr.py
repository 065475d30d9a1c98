"""Length expressions used by the ``length`` attribute of a packet field.

An expression may contain names of other fields of the packet, constants
(all-uppercase names, or paths such as ``std::u32::MIN``), integer
literals, the operators ``+ - * / %`` and parentheses.
"""

import enum
import re
from dataclasses import dataclass

__all__ = ["LengthExprError", "LengthExpr", "parse_length_expr"]

ALLOWED_MESSAGE = (
    "Only field names, constants, integers, basic arithmetic expressions "
    '(+ - * / %) and parentheses are allowed in the "length" attribute'
)
NOT_A_FIELD_MESSAGE = "Field name must be a member of the struct and not the field itself"
UNCLOSED_MESSAGE = "this file contains an un-closed delimiter"

_LEXER = re.compile(
    r"""
      (?P<space>\s+)
    | (?P<name>[A-Za-z_][A-Za-z0-9_]*(?:::[A-Za-z_][A-Za-z0-9_]*)*)
    | (?P<number>[0-9][0-9A-Za-z_]*(?:\.[0-9A-Za-z_]*)?)
    | (?P<op>[-+*/%])
    | (?P<open>\()
    | (?P<close>\))
    | (?P<other>.)
    """,
    re.VERBOSE | re.DOTALL,
)

_INTEGER = re.compile(r"0x[0-9a-fA-F_]+|0o[0-7_]+|0b[01_]+|[0-9][0-9_]*")


class LengthExprError(ValueError):
    """Raised for an invalid length expression or one that cannot be evaluated."""


class TokenKind(enum.Enum):
    FIELD = "field"
    CONSTANT = "constant"
    INTEGER = "integer"
    OPERATOR = "operator"
    OPEN = "open"
    CLOSE = "close"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str

    def render(self):
        if self.kind is TokenKind.FIELD:
            return f"_self.get_{self.text}()"
        return self.text


def _integer_value(text):
    digits = text.replace("_", "")
    prefixes = {"0x": 16, "0o": 8, "0b": 2}
    base = prefixes.get(digits[:2], 10)
    if base != 10:
        digits = digits[2:]
    if not digits:
        raise LengthExprError(ALLOWED_MESSAGE)
    return int(digits, base)


def _lex(expr):
    """Split ``expr`` into raw ``(kind, text)`` pairs, checking delimiters."""
    raw = []
    depth = 0
    for match in _LEXER.finditer(expr):
        kind = match.lastgroup
        text = match.group()
        if kind == "space":
            continue
        if kind == "open":
            depth += 1
        elif kind == "close":
            if depth == 0:
                raise LengthExprError("unexpected close delimiter: `)`")
            depth -= 1
        raw.append((kind, text))
    if depth:
        raise LengthExprError(UNCLOSED_MESSAGE)
    return raw


def _classify(kind, text, field_names):
    if kind == "name":
        if "::" in text or not any(c.islower() for c in text):
            return Token(TokenKind.CONSTANT, text)
        if text not in field_names:
            raise LengthExprError(f"{NOT_A_FIELD_MESSAGE}: {text}")
        return Token(TokenKind.FIELD, text)
    if kind == "number":
        if not _INTEGER.fullmatch(text):
            raise LengthExprError(ALLOWED_MESSAGE)
        _integer_value(text)
        return Token(TokenKind.INTEGER, text)
    if kind == "op":
        return Token(TokenKind.OPERATOR, text)
    if kind == "open":
        return Token(TokenKind.OPEN, text)
    if kind == "close":
        return Token(TokenKind.CLOSE, text)
    raise LengthExprError(ALLOWED_MESSAGE)


class _Evaluator:
    """Recursive-descent evaluation with the usual operator precedence."""

    def __init__(self, tokens, get_field, constants):
        self._tokens = tokens
        self._pos = 0
        self._get_field = get_field
        self._constants = constants

    def _peek(self):
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _take(self):
        token = self._peek()
        if token is None:
            raise LengthExprError("unexpected end of length expression")
        self._pos += 1
        return token

    def run(self):
        value = self._sum()
        leftover = self._peek()
        if leftover is not None:
            raise LengthExprError(f"unexpected token in length expression: {leftover.text}")
        return value

    def _sum(self):
        value = self._product()
        while (token := self._peek()) is not None and token.text in ("+", "-"):
            self._take()
            rhs = self._product()
            if token.text == "+":
                value += rhs
            else:
                value -= rhs
                if value < 0:
                    raise LengthExprError("length expression underflows below zero")
        return value

    def _product(self):
        value = self._atom()
        while (token := self._peek()) is not None and token.text in ("*", "/", "%"):
            self._take()
            rhs = self._atom()
            if token.text == "*":
                value *= rhs
            elif token.text == "/":
                value //= rhs
            else:
                value %= rhs
        return value

    def _atom(self):
        token = self._take()
        if token.kind is TokenKind.INTEGER:
            return _integer_value(token.text)
        if token.kind is TokenKind.FIELD:
            return int(self._get_field(token.text))
        if token.kind is TokenKind.CONSTANT:
            try:
                return int(self._constants[token.text])
            except KeyError:
                raise LengthExprError(f"unknown constant: {token.text}") from None
        if token.kind is TokenKind.OPEN:
            if (inner := self._peek()) is not None and inner.kind is TokenKind.CLOSE:
                raise LengthExprError("empty parentheses in length expression")
            value = self._sum()
            closing = self._take()
            if closing.kind is not TokenKind.CLOSE:
                raise LengthExprError(UNCLOSED_MESSAGE)
            return value
        raise LengthExprError(f"unexpected token in length expression: {token.text}")


@dataclass(frozen=True)
class LengthExpr:
    """A validated length expression."""

    source: str
    tokens: tuple

    def field_names(self):
        """Names of the fields referenced, in order of first use."""
        return tuple(dict.fromkeys(t.text for t in self.tokens if t.kind is TokenKind.FIELD))

    def render(self):
        """Render the expression with field references as accessor calls."""
        parts = []
        previous = None
        for token in self.tokens:
            if previous is not None and previous.kind is not TokenKind.OPEN and token.kind is not TokenKind.CLOSE:
                parts.append(" ")
            parts.append(token.render())
            previous = token
        return "".join(parts)

    def evaluate(self, get_field, constants=None):
        """Compute the length, reading fields through ``get_field(name)``."""
        if not self.tokens:
            raise LengthExprError("empty length expression")
        return _Evaluator(self.tokens, get_field, constants or {}).run()

    def __str__(self):
        return self.render()


def parse_length_expr(expr, field_names):
    """Parse and validate ``expr`` against the names of the other fields."""
    names = frozenset(field_names)
    tokens = tuple(_classify(kind, text, names) for kind, text in _lex(expr))
    return LengthExpr(source=expr, tokens=tokens)