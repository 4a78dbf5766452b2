"""Arithmetic expression parsing and evaluation.

Grammar (standard precedence, binary operators are left-associative):

    expression := term (("+" | "-") term)*
    term       := unary (("*" | "/") unary)*
    unary      := ("-" | "+") unary | primary
    primary    := NUMBER | IDENTIFIER | "(" expression ")"

    NUMBER     := digits ["." digits] | "." digits | digits "."
    IDENTIFIER := [A-Za-z_][A-Za-z0-9_]*

Formulas are parsed into an immutable AST (Literal, Variable, BinaryOp,
Negate) and evaluated by walking it. All arithmetic is Decimal.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, DecimalException, InvalidOperation
from functools import lru_cache
from typing import Any, Iterator, Mapping, Union


class FormulaError(Exception):
    """Base class for formula failures."""

    def __init__(self, message: str, formula: str | None = None):
        self.formula = formula
        super().__init__(message)


class FormulaSyntaxError(FormulaError):
    """Raised when a formula cannot be tokenized or parsed."""

    def __init__(self, message: str, formula: str, position: int):
        self.position = position
        super().__init__(f"{message} at position {position} in {formula!r}", formula)


class FormulaEvaluationError(FormulaError):
    """Raised when Decimal arithmetic fails during evaluation."""


class FormulaDivisionByZeroError(FormulaEvaluationError):
    """Raised when a formula divides by zero."""


class UnknownVariableError(FormulaEvaluationError):
    """Raised in strict mode when a formula references an unbound name."""

    def __init__(self, name: str, formula: str | None = None):
        self.name = name
        super().__init__(f"Unknown variable '{name}'", formula)


RESERVED_WORDS = frozenset(
    {
        "abs", "acos", "asin", "atan", "atan2", "ceiling", "cos", "cosh",
        "exp", "floor", "log", "log10", "max", "min", "pow", "round", "sign",
        "sin", "sinh", "sqrt", "tan", "tanh", "truncate",
        "and", "or", "not", "true", "false",
    }
)

IDENTIFIER_PATTERN = re.compile(r"\b[A-Za-z_][A-Za-z0-9_]*\b", re.ASCII)

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<NUMBER>\d+\.\d*|\.\d+|\d+)
    |(?P<IDENTIFIER>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<OPERATOR>[-+*/])
    |(?P<LPAREN>\()
    |(?P<RPAREN>\))
    |(?P<WHITESPACE>\s+)
    """,
    re.VERBOSE | re.ASCII,
)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def tokenize(formula: str) -> Iterator[Token]:
    """Split a formula into tokens, skipping whitespace."""
    position = 0
    while position < len(formula):
        match = _TOKEN_PATTERN.match(formula, position)
        if match is None:
            raise FormulaSyntaxError(
                f"Unexpected character {formula[position]!r}", formula, position
            )
        kind = match.lastgroup
        if kind != "WHITESPACE":
            yield Token(kind, match.group(), position)
        position = match.end()


# ============================================================================
# AST
# ============================================================================


@dataclass(frozen=True)
class Literal:
    value: Decimal


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Negate:
    operand: Node


Node = Union[Literal, Variable, BinaryOp, Negate]


# ============================================================================
# Parser
# ============================================================================


class Parser:
    """Recursive-descent parser producing an AST for one formula."""

    def __init__(self, formula: str):
        self.formula = formula
        self._tokens = list(tokenize(formula))
        self._index = 0

    def parse(self) -> Node:
        if not self._tokens:
            raise FormulaSyntaxError("Empty expression", self.formula, 0)
        node = self._expression()
        token = self._peek()
        if token is not None:
            raise FormulaSyntaxError(
                f"Unexpected token {token.text!r}", self.formula, token.position
            )
        return node

    def _peek(self) -> Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _advance(self) -> Token:
        token = self._peek()
        if token is None:
            raise FormulaSyntaxError(
                "Unexpected end of expression", self.formula, len(self.formula)
            )
        self._index += 1
        return token

    def _match_operator(self, *ops: str) -> str | None:
        token = self._peek()
        if token is not None and token.kind == "OPERATOR" and token.text in ops:
            self._index += 1
            return token.text
        return None

    def _expression(self) -> Node:
        node = self._term()
        while (op := self._match_operator("+", "-")) is not None:
            node = BinaryOp(op, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._unary()
        while (op := self._match_operator("*", "/")) is not None:
            node = BinaryOp(op, node, self._unary())
        return node

    def _unary(self) -> Node:
        op = self._match_operator("-", "+")
        if op == "-":
            return Negate(self._unary())
        if op == "+":
            return self._unary()
        return self._primary()

    def _primary(self) -> Node:
        token = self._advance()
        if token.kind == "NUMBER":
            return Literal(Decimal(token.text))
        if token.kind == "IDENTIFIER":
            if token.text.lower() in RESERVED_WORDS:
                raise FormulaSyntaxError(
                    f"Reserved word {token.text!r} cannot be used as a variable",
                    self.formula,
                    token.position,
                )
            return Variable(token.text)
        if token.kind == "LPAREN":
            node = self._expression()
            closing = self._advance()
            if closing.kind != "RPAREN":
                raise FormulaSyntaxError(
                    f"Expected ')' but found {closing.text!r}",
                    self.formula,
                    closing.position,
                )
            return node
        raise FormulaSyntaxError(
            f"Unexpected token {token.text!r}", self.formula, token.position
        )


@lru_cache(maxsize=1024)
def parse_formula(formula: str) -> Node:
    """Parse a formula into an AST.

    Raises:
        FormulaSyntaxError: If the formula is not a valid expression
    """
    try:
        return Parser(formula).parse()
    except RecursionError:
        raise FormulaSyntaxError("Expression nested too deeply", formula, 0) from None


def extract_identifiers(formula: str) -> list[str]:
    """Return distinct non-reserved identifiers in first-appearance order."""
    names: dict[str, None] = {}
    for match in IDENTIFIER_PATTERN.finditer(formula):
        name = match.group()
        if name.lower() not in RESERVED_WORDS:
            names.setdefault(name, None)
    return list(names)


# ============================================================================
# Evaluation
# ============================================================================


def to_decimal(value: Any) -> Decimal:
    """Convert a numeric value to Decimal without binary-float drift."""
    if isinstance(value, bool):
        raise TypeError("Boolean is not a numeric formula value")
    result = value if isinstance(value, Decimal) else Decimal(str(value))
    if not result.is_finite():
        raise ValueError(f"Non-finite formula value: {value!r}")
    return result


def _resolve(
    name: str,
    variables: Mapping[str, Any],
    strict: bool,
    missing: set[str] | None,
) -> Decimal:
    try:
        return to_decimal(variables[name])
    except (KeyError, TypeError, ValueError, InvalidOperation):
        if strict:
            raise UnknownVariableError(name) from None
        if missing is not None:
            missing.add(name)
        return Decimal("0")


def _apply(op: str, left: Decimal, right: Decimal) -> Decimal:
    try:
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if right == 0:
            raise FormulaDivisionByZeroError(f"Division by zero: {left} / {right}")
        return left / right
    except DecimalException as e:
        raise FormulaEvaluationError(f"Arithmetic error in {op!r}: {e}") from e


def evaluate(
    node: Node,
    variables: Mapping[str, Any],
    *,
    strict: bool = False,
    missing: set[str] | None = None,
) -> Decimal:
    """Evaluate an AST against a variable mapping.

    The tree is walked with an explicit stack, so long operator chains
    evaluate at any length. Operands are evaluated left to right.

    Unbound or non-numeric variables evaluate to zero and are added to
    ``missing`` unless ``strict`` is set, in which case UnknownVariableError
    is raised.

    Raises:
        FormulaDivisionByZeroError: If any divisor evaluates to zero
        FormulaEvaluationError: If Decimal arithmetic fails
    """
    values: list[Decimal] = []
    pending: list[tuple[Node, bool]] = [(node, False)]

    while pending:
        current, operands_done = pending.pop()

        if isinstance(current, Literal):
            values.append(current.value)
        elif isinstance(current, Variable):
            values.append(_resolve(current.name, variables, strict, missing))
        elif isinstance(current, Negate):
            if operands_done:
                values.append(-values.pop())
            else:
                pending.append((current, True))
                pending.append((current.operand, False))
        elif operands_done:
            right = values.pop()
            left = values.pop()
            values.append(_apply(current.op, left, right))
        else:
            pending.append((current, True))
            pending.append((current.right, False))
            pending.append((current.left, False))

    return values.pop()
