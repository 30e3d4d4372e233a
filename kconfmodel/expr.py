# SPDX-FileCopyrightText: 2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
"""
Expression model and evaluator.

An expression is either a leaf (a Symbol or a Choice) or one of the Expr subclasses below.
Expressions are immutable and shared between properties. They are compared by identity, never by value;
MenuNode.orig_* relies on that to strip dependencies propagated from parent menus and ifs.
"""
from dataclasses import dataclass
from typing import TYPE_CHECKING
from typing import Any
from typing import Callable
from typing import List
from typing import Set
from typing import Type
from typing import Union

from .constants import BOOL
from .constants import EQUAL
from .constants import EQUAL_UNEQUAL
from .constants import GREATER
from .constants import LESS
from .constants import LESS_EQUAL
from .constants import REL_TO_STR
from .constants import STR_TO_BOOL
from .constants import STRING
from .constants import TYPE_TO_BASE
from .constants import UNEQUAL
from .constants import unescape_sub

if TYPE_CHECKING:
    from .symbol import Choice
    from .symbol import Symbol


class Expr:
    """Base class of all non-leaf expression nodes."""

    __slots__ = ()


@dataclass(frozen=True, eq=False)
class And(Expr):
    left: Any
    right: Any


@dataclass(frozen=True, eq=False)
class Or(Expr):
    left: Any
    right: Any


@dataclass(frozen=True, eq=False)
class Not(Expr):
    operand: Any


@dataclass(frozen=True, eq=False)
class Relation(Expr):
    """
    Comparison of two symbols. op is one of EQUAL, UNEQUAL, LESS, LESS_EQUAL, GREATER, GREATER_EQUAL.
    """

    op: int
    left: Any
    right: Any


ExprType = Union["Symbol", "Choice", Expr]


def expr_value(expr: ExprType) -> int:
    """
    Evaluates the expression to 0 (n) or 2 (y).

    Relations compare the string values lexicographically if both operands are string symbols.
    Otherwise a numeric comparison is attempted, falling back to a lexicographic one if either
    value is not a number of the expected base.
    """
    if isinstance(expr, And):
        left_val = expr_value(expr.left)
        return 0 if not left_val else min(left_val, expr_value(expr.right))

    if isinstance(expr, Or):
        left_val = expr_value(expr.left)
        return 2 if left_val == 2 else max(left_val, expr_value(expr.right))

    if isinstance(expr, Not):
        return 2 - expr_value(expr.operand)

    if isinstance(expr, Relation):
        v1, v2 = expr.left, expr.right
        if v1.orig_type == STRING and v2.orig_type == STRING:
            comp = _strcmp(v1.str_value, v2.str_value)
        else:
            try:
                comp = _sym_to_num(v1) - _sym_to_num(v2)
            except ValueError:
                comp = _strcmp(v1.str_value, v2.str_value)

        rel = expr.op
        if rel == EQUAL:
            res = comp == 0
        elif rel == UNEQUAL:
            res = comp != 0
        elif rel == LESS:
            res = comp < 0
        elif rel == LESS_EQUAL:
            res = comp <= 0
        elif rel == GREATER:
            res = comp > 0
        else:  # GREATER_EQUAL
            res = comp >= 0
        return 2 * res

    return expr.bool_value


def standard_sc_expr_str(sc: Union["Symbol", "Choice"]) -> str:
    """
    Default formatting of symbol/choice references in expr_str(). Constant symbols other than n/y
    are quoted, choices are shown as <choice NAME>.
    """
    if not sc.is_choice:
        if sc.is_constant and sc.name not in STR_TO_BOOL:
            return f'"{escape(sc.name)}"'
        return sc.name
    return f"<choice {sc.name}>" if sc.name else "<choice>"


def _parenthesize(expr: ExprType, type_: Type[Expr], sc_expr_str_fn: Callable) -> str:
    if isinstance(expr, type_):
        return f"({expr_str(expr, sc_expr_str_fn)})"
    return expr_str(expr, sc_expr_str_fn)


def expr_str(expr: ExprType, sc_expr_str_fn: Callable = standard_sc_expr_str) -> str:
    """
    Returns the string representation of the expression, in Kconfig syntax.

    sc_expr_str_fn is called for every symbol/choice reference and can be used for custom formatting
    (e.g. turning references into links).
    """
    if isinstance(expr, And):
        return (
            f"{_parenthesize(expr.left, Or, sc_expr_str_fn)} && {_parenthesize(expr.right, Or, sc_expr_str_fn)}"
        )

    if isinstance(expr, Or):
        return (
            f"{_parenthesize(expr.left, And, sc_expr_str_fn)} || {_parenthesize(expr.right, And, sc_expr_str_fn)}"
        )

    if isinstance(expr, Not):
        if isinstance(expr.operand, Expr):
            return f"!({expr_str(expr.operand, sc_expr_str_fn)})"
        return "!" + sc_expr_str_fn(expr.operand)

    if isinstance(expr, Relation):
        return f"{sc_expr_str_fn(expr.left)} {REL_TO_STR[expr.op]} {sc_expr_str_fn(expr.right)}"

    return sc_expr_str_fn(expr)


def expr_items(expr: ExprType) -> Set[Union["Symbol", "Choice"]]:
    """
    Returns a set of all symbols and choices that appear in the expression.
    """
    res = set()

    def rec(subexpr):
        if isinstance(subexpr, Not):
            rec(subexpr.operand)
        elif isinstance(subexpr, Expr):
            rec(subexpr.left)
            rec(subexpr.right)
        else:
            res.add(subexpr)

    rec(expr)
    return res


def split_expr(expr: ExprType, op: Type[Expr]) -> List[ExprType]:
    """
    Returns a list containing the top-level AND or OR operands in the expression 'expr', in the same
    (left-to-right) order as they appear. op is And or Or.

    For example, split_expr(A && B && (C || D), And) gives [A, B, C || D].
    """
    res = []

    def rec(subexpr):
        if subexpr.__class__ is op:
            rec(subexpr.left)
            rec(subexpr.right)
        else:
            res.append(subexpr)

    rec(expr)
    return res


def escape(s: str) -> str:
    r"""
    Escapes '"' and '\' with a backslash, as used in .config files and Kconfig string literals.
    """
    return s.replace("\\", r"\\").replace('"', r"\"")


def unescape(s: str) -> str:
    """
    Reverses escape(): removes the backslash from any backslash-escaped character.
    """
    return unescape_sub(r"\1", s)


def depend_on(sc: Union["Symbol", "Choice"], expr: ExprType) -> None:
    """
    Adds 'sc' as a dependent to every non-constant item in 'expr'.
    """
    if isinstance(expr, Not):
        depend_on(sc, expr.operand)
    elif isinstance(expr, Expr):
        depend_on(sc, expr.left)
        depend_on(sc, expr.right)
    elif not expr.is_constant:
        expr._dependents.add(sc)


def expr_depends_on(expr: ExprType, sym: "Symbol") -> bool:
    """
    Returns True if 'expr' uses 'sym' in a way that makes it false whenever 'sym' is n: either directly,
    as "sym = y", as "sym != n", or through an AND.
    """
    if not isinstance(expr, Expr):
        return expr is sym

    if isinstance(expr, Relation) and expr.op in EQUAL_UNEQUAL:
        left, right = expr.left, expr.right
        if right is sym:
            left, right = right, left
        elif left is not sym:
            return False
        return (expr.op == EQUAL and right is sym.kconfig.y) or (expr.op == UNEQUAL and right is sym.kconfig.n)

    return isinstance(expr, And) and (expr_depends_on(expr.left, sym) or expr_depends_on(expr.right, sym))


def is_base_n(s: str, n: int) -> bool:
    try:
        int(s, n)
        return True
    except ValueError:
        return False


def _strcmp(s1: str, s2: str) -> int:
    return (s1 > s2) - (s1 < s2)


def _sym_to_num(sym: Union["Symbol", "Choice"]) -> int:
    return sym.bool_value if sym.orig_type == BOOL else int(sym.str_value, TYPE_TO_BASE[sym.orig_type])
