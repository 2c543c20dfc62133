"""Condition expressions for validation rules.

Validation rules may carry a ``condition`` string such as
``"formValues.hasDisability === true && formValues.age >= 60"``. The rule is
only applied when the condition holds for the current form values.

Conditions are parsed once, when a form is loaded, into a tree of closures.
Nothing here hands the text to Python's own evaluator: the grammar is small
and closed.

Grammar::

    expr       := or_expr
    or_expr    := and_expr (("||" | "OR") and_expr)*
    and_expr   := not_expr (("&&" | "AND") not_expr)*
    not_expr   := ("!" | "NOT") not_expr | comparison
    comparison := operand (op operand)?
    op         := "===" | "!==" | "==" | "!=" | "<" | "<=" | ">" | ">="
    operand    := literal | reference | "(" expr ")"
    reference  := ("formValues" | "value" | NAME) ("." NAME | "[" STRING "]")*
    literal    := NUMBER | STRING | true | false | null | undefined

``value`` is the value of the field the rule belongs to. A bare NAME is
shorthand for ``formValues.NAME``.

Comparison and truthiness follow the semantics metadata authors write
against: booleans never strictly equal numbers, blank strings coerce to 0,
and comparisons that cannot be made are simply false.

Usage:
    >>> cond = compile_condition("formValues.A === true")
    >>> cond({"A": True})
    True
    >>> cond({"A": False})
    False
    >>> sorted(cond.references)
    ['A']
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, List, Optional, Set

from barakatna_forms.errors import ConditionSyntaxError
from barakatna_forms.types import FormValues


_NUMERIC_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INFINITY_RE = re.compile(r"^[+-]?Infinity$")


def is_number(value: Any) -> bool:
    """True for ints and floats, but not booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> float:
    """Coerce a form value to a number.

    Booleans become 0/1, blank strings become 0, numeric strings are parsed,
    single-element lists coerce their element, an empty list is 0. Anything
    else, including ``None``, is NaN.

    Examples:
        >>> to_number("12.5")
        12.5
        >>> to_number("")
        0.0
        >>> math.isnan(to_number("abc"))
        True
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if _NUMERIC_RE.match(text):
            return float(text)
        if _INFINITY_RE.match(text):
            return -math.inf if text.startswith("-") else math.inf
        return math.nan
    if isinstance(value, (list, tuple)):
        if not value:
            return 0.0
        if len(value) == 1 and not isinstance(value[0], (list, tuple)):
            return to_number(value[0] if value[0] is not None else "")
        return math.nan
    return math.nan


def is_truthy(value: Any) -> bool:
    """Truthiness of a form value.

    ``None``, ``False``, zero, NaN and the empty string are falsy. Every
    list and mapping is truthy, including empty ones.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def _category(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without type coercion.

    Examples:
        >>> strict_equals(1, True)
        False
        >>> strict_equals("yes", "yes")
        True
    """
    if _category(left) != _category(right):
        return False
    return bool(left == right)


def loose_equals(left: Any, right: Any) -> bool:
    """Equality with coercion between strings, numbers and booleans."""
    left_kind, right_kind = _category(left), _category(right)
    if left_kind == right_kind:
        return bool(left == right)
    if "null" in (left_kind, right_kind) or "object" in (left_kind, right_kind):
        return False
    return to_number(left) == to_number(right)


def _relational(left: Any, right: Any, compare: Callable[[Any, Any], bool]) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        return compare(left, right)
    a, b = to_number(left), to_number(right)
    if math.isnan(a) or math.isnan(b):
        return False
    return compare(a, b)


_COMPARISONS = {
    "===": strict_equals,
    "!==": lambda a, b: not strict_equals(a, b),
    "==": loose_equals,
    "!=": lambda a, b: not loose_equals(a, b),
    "<": lambda a, b: _relational(a, b, lambda x, y: x < y),
    "<=": lambda a, b: _relational(a, b, lambda x, y: x <= y),
    ">": lambda a, b: _relational(a, b, lambda x, y: x > y),
    ">=": lambda a, b: _relational(a, b, lambda x, y: x >= y),
}

_KEYWORDS = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
}

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
    |(?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
    |(?P<op>===|!==|==|!=|<=|>=|&&|\|\||<|>|!)
    |(?P<punct>[().\[\]])
    |(?P<name>[A-Za-z_$][A-Za-z0-9_$]*)
    """,
    re.VERBOSE,
)

_WORD_OPERATORS = {"AND": "&&", "and": "&&", "OR": "||", "or": "||", "NOT": "!", "not": "!"}


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    position: int


def _unquote(text: str) -> str:
    body = text[1:-1]
    return re.sub(r"\\(.)", lambda m: {"n": "\n", "t": "\t"}.get(m.group(1), m.group(1)), body)


def _tokenize(source: str) -> List[_Token]:
    tokens: List[_Token] = []
    position = 0
    while position < len(source):
        match = _TOKEN_RE.match(source, position)
        if not match:
            raise ConditionSyntaxError(source, position, f"unexpected character {source[position]!r}")
        kind = match.lastgroup or ""
        text = match.group()
        if kind == "name" and text in _WORD_OPERATORS:
            kind, text = "op", _WORD_OPERATORS[text]
        if kind != "ws":
            tokens.append(_Token(kind, text, position))
        position = match.end()
    tokens.append(_Token("end", "", len(source)))
    return tokens


# Compiled node: (form values, own field value) -> result
_Node = Callable[[FormValues, Any], Any]


def _member(container: Any, key: str) -> Any:
    if isinstance(container, dict):
        return container.get(key)
    if key == "length" and isinstance(container, (str, list, tuple)):
        return len(container)
    return None


class _Parser:
    """Recursive-descent parser producing closures."""

    def __init__(self, source: str):
        self.source = source
        self.tokens = _tokenize(source)
        self.index = 0
        self.references: Set[str] = set()

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def _advance(self) -> _Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _accept(self, kind: str, text: Optional[str] = None) -> Optional[_Token]:
        token = self.current
        if token.kind == kind and (text is None or token.text == text):
            return self._advance()
        return None

    def _expect(self, kind: str, text: Optional[str] = None) -> _Token:
        token = self._accept(kind, text)
        if token is None:
            wanted = text or kind
            found = self.current.text or "end of expression"
            raise ConditionSyntaxError(self.source, self.current.position, f"expected {wanted!r}, found {found!r}")
        return token

    def parse(self) -> _Node:
        if self.current.kind == "end":
            raise ConditionSyntaxError(self.source, 0, "empty expression")
        node = self._or()
        if self.current.kind != "end":
            raise ConditionSyntaxError(
                self.source, self.current.position, f"unexpected {self.current.text!r}"
            )
        return node

    def _or(self) -> _Node:
        operands = [self._and()]
        while self._accept("op", "||"):
            operands.append(self._and())
        if len(operands) == 1:
            return operands[0]
        return lambda values, own: any(is_truthy(op(values, own)) for op in operands)

    def _and(self) -> _Node:
        operands = [self._not()]
        while self._accept("op", "&&"):
            operands.append(self._not())
        if len(operands) == 1:
            return operands[0]
        return lambda values, own: all(is_truthy(op(values, own)) for op in operands)

    def _not(self) -> _Node:
        if self._accept("op", "!"):
            inner = self._not()
            return lambda values, own: not is_truthy(inner(values, own))
        return self._comparison()

    def _comparison(self) -> _Node:
        left = self._operand()
        token = self.current
        if token.kind == "op" and token.text in _COMPARISONS:
            self._advance()
            right = self._operand()
            compare = _COMPARISONS[token.text]
            return lambda values, own: compare(left(values, own), right(values, own))
        return left

    def _operand(self) -> _Node:
        token = self.current
        if self._accept("punct", "("):
            inner = self._or()
            self._expect("punct", ")")
            return inner
        if self._accept("number"):
            literal: Any = int(token.text) if token.text.isdigit() else float(token.text)
            return lambda values, own: literal
        if self._accept("string"):
            text = _unquote(token.text)
            return lambda values, own: text
        if token.kind == "name":
            return self._reference()
        found = token.text or "end of expression"
        raise ConditionSyntaxError(self.source, token.position, f"expected a value, found {found!r}")

    def _reference(self) -> _Node:
        token = self._advance()
        name = token.text

        if name in _KEYWORDS:
            constant = _KEYWORDS[name]
            return lambda values, own: constant

        if name == "formValues":
            key = self._member_key()
            self.references.add(key)
            base: _Node = lambda values, own: values.get(key)
        elif name == "value":
            base = lambda values, own: own
        else:
            self.references.add(name)
            base = lambda values, own: values.get(name)

        members: List[str] = []
        while self.current.kind == "punct" and self.current.text in (".", "["):
            members.append(self._member_key())

        if not members:
            return base

        def lookup(values: FormValues, own: Any) -> Any:
            result = base(values, own)
            for key in members:
                result = _member(result, key)
            return result

        return lookup

    def _member_key(self) -> str:
        if self._accept("punct", "."):
            return self._expect("name").text
        if self._accept("punct", "["):
            key = _unquote(self._expect("string").text)
            self._expect("punct", "]")
            return key
        raise ConditionSyntaxError(
            self.source, self.current.position, "expected '.name' or '[\"name\"]' after formValues"
        )


@dataclass(frozen=True)
class Condition:
    """A compiled condition expression.

    Attributes:
        source: Expression text as written in the metadata
        references: Names of the form values the expression reads
    """
    source: str
    references: FrozenSet[str] = field(default_factory=frozenset)
    _evaluate: _Node = field(default=lambda values, own: True, repr=False, compare=False)

    def __call__(self, values: FormValues, value: Any = None) -> bool:
        return is_truthy(self._evaluate(values, value))


def compile_condition(source: str) -> Condition:
    """Parse a condition expression into a callable Condition.

    Args:
        source: Expression text

    Returns:
        Condition callable as ``condition(values, value=None) -> bool``

    Raises:
        ConditionSyntaxError: If the expression does not parse
    """
    parser = _Parser(source)
    evaluate = parser.parse()
    return Condition(source=source, references=frozenset(parser.references), _evaluate=evaluate)


__all__ = [
    "Condition",
    "compile_condition",
    "is_number",
    "is_truthy",
    "loose_equals",
    "strict_equals",
    "to_number",
]
