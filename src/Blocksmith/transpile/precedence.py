"""Operator precedence for generated PHP and the rules built on top of it.

Ranks are ordered so that a *smaller* rank binds *tighter*: atomic values
sit at the bottom of the table and ``Order.NONE`` (a context that never
needs grouping, such as a whole statement or a call argument) at the top.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, NamedTuple, Optional, Union


@dataclass(frozen=True, order=True)
class Rank:
    """A ``(major, minor)`` precedence rank.

    ``major`` is PHP's precedence level.  ``minor`` separates operators that
    share a level (``+``, ``-`` and ``.``) so that the override table can name
    them individually; it never makes one of them bind tighter than another.
    """

    major: int
    minor: int = 0

    def coarse(self) -> int:
        return self.major


class Order:
    """PHP operator precedence table.

    https://www.php.net/manual/en/language.operators.precedence.php
    """

    ATOMIC = Rank(0)             # 0 "" ...
    CLONE = Rank(1)              # clone
    NEW = Rank(1)                # new
    MEMBER = Rank(2, 1)          # []
    FUNCTION_CALL = Rank(2, 2)   # ()
    POWER = Rank(3)              # **
    INCREMENT = Rank(4)          # ++
    DECREMENT = Rank(4)          # --
    BITWISE_NOT = Rank(4)        # ~
    CAST = Rank(4)               # (int) (float) (string) (array) ...
    SUPPRESS_ERROR = Rank(4)     # @
    INSTANCEOF = Rank(5)         # instanceof
    LOGICAL_NOT = Rank(6)        # !
    UNARY_PLUS = Rank(7, 1)      # +
    UNARY_NEGATION = Rank(7, 2)  # -
    MULTIPLICATION = Rank(8, 1)  # *
    DIVISION = Rank(8, 2)        # /
    MODULUS = Rank(8, 3)         # %
    ADDITION = Rank(9, 1)        # +
    SUBTRACTION = Rank(9, 2)     # -
    STRING_CONCAT = Rank(9, 3)   # .
    BITWISE_SHIFT = Rank(10)     # << >>
    RELATIONAL = Rank(11)        # < <= > >=
    EQUALITY = Rank(12)          # == != === !== <> <=>
    REFERENCE = Rank(13)         # &
    BITWISE_AND = Rank(13)       # &
    BITWISE_XOR = Rank(14)       # ^
    BITWISE_OR = Rank(15)        # |
    LOGICAL_AND = Rank(16)       # &&
    LOGICAL_OR = Rank(17)        # ||
    IF_NULL = Rank(18)           # ??
    CONDITIONAL = Rank(19)       # ?:
    ASSIGNMENT = Rank(20)        # = += -= *= /= %= <<= >>= ...
    LOGICAL_AND_WEAK = Rank(21)  # and
    LOGICAL_XOR = Rank(22)       # xor
    LOGICAL_OR_WEAK = Rank(23)   # or
    COMMA = Rank(24)             # ,
    NONE = Rank(99)              # (...)


def _pair(outer: Rank, inner: Rank) -> FrozenSet[Rank]:
    return frozenset((outer, inner))


# Outer/inner pairings that do not need parentheses.
ORDER_OVERRIDES: FrozenSet[FrozenSet[Rank]] = frozenset(
    {
        # (foo()).bar() -> foo().bar()
        # (foo())[0] -> foo()[0]
        _pair(Order.MEMBER, Order.FUNCTION_CALL),
        # (foo[0])[1] -> foo[0][1]
        # (foo.bar).baz -> foo.bar.baz
        _pair(Order.MEMBER, Order.MEMBER),
        # !(!foo) -> !!foo
        _pair(Order.LOGICAL_NOT, Order.LOGICAL_NOT),
        # a * (b * c) -> a * b * c
        _pair(Order.MULTIPLICATION, Order.MULTIPLICATION),
        # a + (b + c) -> a + b + c
        _pair(Order.ADDITION, Order.ADDITION),
        # a && (b && c) -> a && b && c
        _pair(Order.LOGICAL_AND, Order.LOGICAL_AND),
        # a || (b || c) -> a || b || c
        _pair(Order.LOGICAL_OR, Order.LOGICAL_OR),
    }
)


class RenderedExpr(NamedTuple):
    """Text of a rendered value together with the rank of its outermost operator."""

    text: str
    rank: Rank


def needs_parens(
    outer: Rank,
    inner: Rank,
    overrides: FrozenSet[FrozenSet[Rank]] = ORDER_OVERRIDES,
) -> bool:
    """Return ``True`` when an operand of rank ``inner`` must be grouped in ``outer``."""

    if inner == Order.ATOMIC:
        return False
    if _pair(outer, inner) in overrides:
        return False
    if inner.major < outer.major:
        return False
    if inner.major == outer.major and inner.major in (
        Order.ATOMIC.major,
        Order.NONE.major,
    ):
        return False
    return True


def compare_major_only(outer: Rank, inner: Rank) -> bool:
    """Coarse form of :func:`needs_parens` that ignores minor ranks and overrides."""

    return inner.coarse() >= outer.coarse()


def wrap(code: str, outer: Rank, inner: Rank) -> str:
    """Group ``code`` if an operand of rank ``inner`` needs it inside ``outer``."""

    if needs_parens(outer, inner):
        return f"({code})"
    return code


_NUMBER_RE = re.compile(r"^\s*-?\d+(\.\d+)?\s*$")


def is_number(text: Union[str, int, float]) -> bool:
    """Whether ``text`` is a plain decimal literal such as ``3`` or ``-2.5``."""

    return bool(_NUMBER_RE.match(str(text)))


def format_number(value: float) -> str:
    """Render a folded numeric value without a redundant ``.0``."""

    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        value = int(value)
    if isinstance(value, int):
        return str(value)
    return repr(value)


def adjust_index(
    base: Union[RenderedExpr, str, None],
    delta: int = 0,
    negate: bool = False,
    order: Rank = Order.NONE,
    *,
    one_based: bool = False,
) -> RenderedExpr:
    """Shift and/or negate an index expression.

    A :class:`RenderedExpr` base is grouped before any arithmetic is applied
    to it when its rank binds looser than that arithmetic.  A bare string is
    taken as already grouped.  Handlers think in zero-based indexes, so a
    one-based workspace shifts ``delta`` down by one.  Numeric literals are
    folded right away; dynamic expressions get the smallest amount of
    runtime arithmetic.  ``order`` is the tightest operator the caller will
    apply to the result.
    """

    if one_based:
        delta -= 1
    if isinstance(base, RenderedExpr):
        base, base_rank = base.text, base.rank
    else:
        base_rank = Order.ATOMIC
    if not base:
        base = "1" if one_based else "0"

    if is_number(base):
        value = float(base) + delta
        if negate:
            value = -value
        text = format_number(value)
        rank = Order.UNARY_NEGATION if value < 0 else Order.ATOMIC
        return RenderedExpr(text, rank)

    if delta > 0:
        applied = Order.ADDITION
    elif delta < 0:
        applied = Order.SUBTRACTION
    elif negate:
        applied = Order.UNARY_NEGATION
    else:
        applied = order
    text = base
    if needs_parens(applied, base_rank):
        text = f"({text})"
        base_rank = Order.ATOMIC

    inner: Optional[Rank] = None
    if delta > 0:
        text = f"{text} + {delta}"
        inner = Order.ADDITION
    elif delta < 0:
        text = f"{text} - {-delta}"
        inner = Order.SUBTRACTION
    if negate:
        text = f"-({text})" if delta else f"-{text}"
        inner = Order.UNARY_NEGATION

    if inner is None:
        return RenderedExpr(text, base_rank)
    if compare_major_only(order, inner):
        text = f"({text})"
        return RenderedExpr(text, Order.ATOMIC)
    return RenderedExpr(text, inner)
