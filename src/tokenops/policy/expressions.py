"""Applicability expressions for requirement templates.

Templates carry a small boolean expression over fact names, written in
the notation used by the compliance team::

    assetClass == 'ART' && investorAudience == 'retail'
    transferType == 'CASP_TO_SELF_HOSTED' || transferType == 'SELF_HOSTED_TO_CASP'
    'EU' in targetMarkets && !isCaspInvolved

Supported: ``==``, ``!=`` (``===``/``!==`` accepted), ``<``, ``<=``, ``>``,
``>=``, ``in``, ``not in``, ``&&``/``and``, ``||``/``or``, ``!``/``not``,
parentheses, string / number / ``true`` / ``false`` / ``null`` literals
and list literals.  Expressions are parsed with :mod:`ast` and walked
against a node whitelist; nothing is ever passed to ``eval``.
"""

from __future__ import annotations

import ast
import operator as op
import re
from functools import lru_cache
from typing import Any, Mapping

from tokenops.core.errors import ExpressionError

# Map comparison nodes to Python comparison functions
_COMPARE_OPS: dict[type, Any] = {
    ast.Eq: op.eq,
    ast.NotEq: op.ne,
    ast.Lt: op.lt,
    ast.LtE: op.le,
    ast.Gt: op.gt,
    ast.GtE: op.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

_STRING_LITERAL = re.compile(r"""('(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")""")

# Applied in order to the code outside string literals
_REWRITES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"==="), "=="),
    (re.compile(r"!=="), "!="),
    (re.compile(r"&&"), " and "),
    (re.compile(r"\|\|"), " or "),
    (re.compile(r"!(?!=)"), " not "),
    (re.compile(r"\btrue\b"), "True"),
    (re.compile(r"\bfalse\b"), "False"),
    (re.compile(r"\bnull\b"), "None"),
)


def _to_python(expression: str) -> str:
    parts = _STRING_LITERAL.split(expression)
    # split() with a capturing group alternates code, literal, code, ...
    for i in range(0, len(parts), 2):
        code = parts[i]
        for pattern, replacement in _REWRITES:
            code = pattern.sub(replacement, code)
        parts[i] = code
    return "".join(parts).strip()


def _check_node(node: ast.AST, source: str) -> None:
    """Reject any syntax outside the whitelist."""
    if isinstance(node, ast.BoolOp):
        for value in node.values:
            _check_node(value, source)
    elif isinstance(node, ast.UnaryOp):
        if not isinstance(node.op, ast.Not):
            raise ExpressionError(f"Unsupported unary operator in {source!r}")
        _check_node(node.operand, source)
    elif isinstance(node, ast.Compare):
        for cmp_op in node.ops:
            if type(cmp_op) not in _COMPARE_OPS:
                raise ExpressionError(
                    f"Unsupported comparison {type(cmp_op).__name__} in {source!r}"
                )
        _check_node(node.left, source)
        for comparator in node.comparators:
            _check_node(comparator, source)
    elif isinstance(node, (ast.List, ast.Tuple)):
        for elt in node.elts:
            _check_node(elt, source)
    elif isinstance(node, ast.Constant):
        if not isinstance(node.value, (str, int, float, bool, type(None))):
            raise ExpressionError(f"Unsupported literal in {source!r}")
    elif isinstance(node, ast.Name):
        pass
    else:
        raise ExpressionError(
            f"Unsupported syntax {type(node).__name__} in {source!r}"
        )


class ApplicabilityExpression:
    """A parsed, validated applicability expression."""

    def __init__(self, source: str) -> None:
        self.source = source
        translated = _to_python(source)
        if not translated:
            raise ExpressionError("Empty applicability expression")
        try:
            tree = ast.parse(translated, mode="eval")
        except SyntaxError as exc:
            raise ExpressionError(f"Cannot parse {source!r}: {exc.msg}") from exc
        _check_node(tree.body, source)
        self._body = tree.body
        self.names = frozenset(
            n.id for n in ast.walk(tree.body) if isinstance(n, ast.Name)
        )

    def evaluate(self, context: Mapping[str, Any]) -> bool:
        """Evaluate against *context*.  Unknown fact names raise."""
        missing = self.names - context.keys()
        if missing:
            raise ExpressionError(
                f"Unknown fact(s) {sorted(missing)} in {self.source!r}"
            )
        return bool(self._eval(self._body, context))

    def _eval(self, node: ast.AST, context: Mapping[str, Any]) -> Any:
        if isinstance(node, ast.BoolOp):
            if isinstance(node.op, ast.And):
                result: Any = True
                for value in node.values:
                    result = self._eval(value, context)
                    if not result:
                        return result
                return result
            result = False
            for value in node.values:
                result = self._eval(value, context)
                if result:
                    return result
            return result
        if isinstance(node, ast.UnaryOp):
            return not self._eval(node.operand, context)
        if isinstance(node, ast.Compare):
            left = self._eval(node.left, context)
            for cmp_op, comparator in zip(node.ops, node.comparators):
                right = self._eval(comparator, context)
                try:
                    if not _COMPARE_OPS[type(cmp_op)](left, right):
                        return False
                except TypeError as exc:
                    raise ExpressionError(
                        f"Type mismatch evaluating {self.source!r}: {exc}"
                    ) from exc
                left = right
            return True
        if isinstance(node, (ast.List, ast.Tuple)):
            return [self._eval(elt, context) for elt in node.elts]
        if isinstance(node, ast.Constant):
            return node.value
        if isinstance(node, ast.Name):
            return context[node.id]
        raise ExpressionError(f"Unsupported syntax in {self.source!r}")

    def __repr__(self) -> str:
        return f"ApplicabilityExpression({self.source!r})"


@lru_cache(maxsize=512)
def compile_expression(source: str) -> ApplicabilityExpression:
    """Parse and validate *source*.  Results are cached per source string."""
    return ApplicabilityExpression(source)


def evaluate_expression(source: str, context: Mapping[str, Any]) -> bool:
    return compile_expression(source).evaluate(context)
