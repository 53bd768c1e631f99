"""
Boolean condition expressions for CONDITIONAL rules.

The engine treats expression evaluation as a pluggable strategy: anything
implementing ExpressionEvaluator.evaluate(expression, context) -> bool can be
passed to the engine. SimpleExpressionEvaluator is the bundled implementation.

Supported grammar (SimpleExpressionEvaluator):

    expr       := or
    or         := and (("||" | "or") and)*
    and        := not (("&&" | "and") not)*
    not        := ("!" | "not") not | comparison
    comparison := operand (("==" | "!=" | "<" | "<=" | ">" | ">=") operand)?
    operand    := STRING | NUMBER | "true" | "false" | "null" | FIELD | "(" expr ")"

FIELD is a dotted path resolved against the context object, so
"address.country == 'US'" and "comment != null || commentBy != null" both work.
"""

import enum
import functools
import logging
import re
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, List, Tuple

from .path_resolver import ABSENT, accessor_for

logger = logging.getLogger(__name__)


class ExpressionError(ValueError):
    """Tokenise, parse or evaluation failure inside an expression."""


class ExpressionEvaluator(ABC):
    """Strategy interface: evaluate a boolean expression against a context object."""

    @abstractmethod
    def evaluate(self, expression: str, context: Any) -> bool:
        """
        Evaluate expression with context as the root object.

        Implementations must not raise: internal failures map to False.
        """


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<str>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<num>\d+(?:\.\d+)?)
  | (?P<op>==|!=|<=|>=|&&|\|\||<|>|!|\(|\))
  | (?P<name>(?:\$\.)?[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
    """,
    re.VERBOSE,
)

_KEYWORDS = {"and", "or", "not", "true", "false", "null"}
_COMPARISONS = {"==", "!=", "<", "<=", ">", ">="}

Token = Tuple[str, str]


def _unescape(literal: str) -> str:
    body = literal[1:-1]
    return re.sub(r"\\(.)", r"\1", body)


def tokenize(expression: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(expression):
        match = _TOKEN_RE.match(expression, pos)
        if not match:
            raise ExpressionError(f"Unexpected character {expression[pos]!r} at {pos}")
        pos = match.end()
        kind = match.lastgroup
        text = match.group(kind)
        if kind == "ws":
            continue
        if kind == "name" and text.lower() in _KEYWORDS:
            kind, text = "kw", text.lower()
        tokens.append((kind, text))
    return tokens


class _Parser:
    """Recursive-descent parser producing a small tuple-based AST."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def parse(self):
        if not self.tokens:
            raise ExpressionError("Empty expression")
        node = self._or()
        if self.pos != len(self.tokens):
            raise ExpressionError(f"Unexpected token {self.tokens[self.pos][1]!r}")
        return node

    def _peek(self) -> Token:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else ("eof", "")

    def _accept(self, *texts: str) -> bool:
        kind, text = self._peek()
        if kind in ("op", "kw") and text in texts:
            self.pos += 1
            return True
        return False

    def _or(self):
        node = self._and()
        while self._accept("||", "or"):
            node = ("or", node, self._and())
        return node

    def _and(self):
        node = self._not()
        while self._accept("&&", "and"):
            node = ("and", node, self._not())
        return node

    def _not(self):
        if self._accept("!", "not"):
            return ("not", self._not())
        return self._comparison()

    def _comparison(self):
        left = self._operand()
        kind, text = self._peek()
        if kind == "op" and text in _COMPARISONS:
            self.pos += 1
            return ("cmp", text, left, self._operand())
        return left

    def _operand(self):
        kind, text = self._peek()
        self.pos += 1
        if kind == "str":
            return ("lit", _unescape(text))
        if kind == "num":
            return ("lit", Decimal(text) if "." in text else int(text))
        if kind == "kw" and text in ("true", "false", "null"):
            return ("lit", {"true": True, "false": False, "null": None}[text])
        if kind == "name":
            return ("field", text)
        if kind == "op" and text == "(":
            node = self._or()
            if not self._accept(")"):
                raise ExpressionError("Missing closing parenthesis")
            return node
        raise ExpressionError(f"Unexpected token {text!r}" if kind != "eof" else "Unexpected end of expression")


@functools.lru_cache(maxsize=512)
def compile_expression(expression: str):
    """Parse expression into an AST (cached)."""
    return _Parser(tokenize(expression)).parse()


def _normalize(value: Any) -> Any:
    if value is ABSENT:
        return None
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, Decimal)) and not isinstance(value, bool)


def _as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ExpressionError(f"Expected a boolean operand, got {type(value).__name__}")
    return value


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "==":
        return left == right
    if op == "!=":
        return left != right
    comparable = (_is_number(left) and _is_number(right)) or (
        isinstance(left, str) and isinstance(right, str)
    )
    if not comparable:
        raise ExpressionError(
            f"Cannot order {type(left).__name__} and {type(right).__name__}"
        )
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


def _eval(node, accessor) -> Any:
    tag = node[0]
    if tag == "lit":
        return node[1]
    if tag == "field":
        return _normalize(accessor.get(node[1]))
    if tag == "not":
        return not _as_bool(_eval(node[1], accessor))
    if tag == "and":
        return _as_bool(_eval(node[1], accessor)) and _as_bool(_eval(node[2], accessor))
    if tag == "or":
        return _as_bool(_eval(node[1], accessor)) or _as_bool(_eval(node[2], accessor))
    if tag == "cmp":
        return _compare(node[1], _eval(node[2], accessor), _eval(node[3], accessor))
    raise ExpressionError(f"Unknown node {tag!r}")


class SimpleExpressionEvaluator(ExpressionEvaluator):
    """Equality, ordering and boolean combinators over dotted field references."""

    def evaluate(self, expression: str, context: Any) -> bool:
        if context is None or not expression or not expression.strip():
            return False
        try:
            tree = compile_expression(expression.strip())
            return _eval(tree, accessor_for(context)) is True
        except (ExpressionError, ArithmeticError, TypeError, RecursionError) as e:
            logger.debug(
                "Condition evaluated to false after error",
                extra={"expression": expression, "error": str(e)},
            )
            return False
