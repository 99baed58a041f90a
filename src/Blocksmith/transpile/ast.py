"""Block node definitions shared by the workspace loader and the emitter."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from typing import Iterator, List, Optional


@dataclass
class Block:
    """Base class for every construct in a workspace."""

    id: Optional[str] = field(default=None, kw_only=True)
    comment: Optional[str] = field(default=None, kw_only=True)
    disabled: bool = field(default=False, kw_only=True)


@dataclass
class Expr(Block):
    """A block that produces a value through its output connection."""


@dataclass
class Statement(Block):
    """A block that sits in a statement sequence."""

    next: Optional["Statement"] = field(default=None, kw_only=True)


@dataclass
class Variable:
    """A workspace variable; blocks refer to it by ``id``."""

    id: str
    name: str


@dataclass
class Program:
    """Container for a loaded workspace."""

    blocks: List[Block] = field(default_factory=list)
    variables: List[Variable] = field(default_factory=list)


# -- logic -------------------------------------------------------------------


@dataclass
class ConditionalBranch:
    """One ``if``/``else if`` arm of an :class:`IfBlock`."""

    condition: Optional[Expr] = None
    body: Optional[Statement] = None


@dataclass
class IfBlock(Statement):
    """An ``if``/``else if``/``else`` chain."""

    branches: List[ConditionalBranch] = field(default_factory=list)
    else_body: Optional[Statement] = None
    has_else: bool = False


@dataclass
class Compare(Expr):
    """Comparison of ``a`` and ``b``; ``op`` is one of EQ, NEQ, LT, LTE, GT, GTE."""

    op: str = "EQ"
    a: Optional[Expr] = None
    b: Optional[Expr] = None


@dataclass
class LogicOperation(Expr):
    """``a && b`` or ``a || b`` depending on ``op`` (AND/OR)."""

    op: str = "AND"
    a: Optional[Expr] = None
    b: Optional[Expr] = None


@dataclass
class Negate(Expr):
    value: Optional[Expr] = None


@dataclass
class BooleanLiteral(Expr):
    value: bool = True


@dataclass
class NullLiteral(Expr):
    pass


@dataclass
class Ternary(Expr):
    condition: Optional[Expr] = None
    then_value: Optional[Expr] = None
    else_value: Optional[Expr] = None


# -- loops -------------------------------------------------------------------


@dataclass
class Repeat(Statement):
    """Run ``body`` a fixed number of times."""

    times: Optional[Expr] = None
    body: Optional[Statement] = None


@dataclass
class WhileUntil(Statement):
    """Loop while (or until, when ``mode`` is UNTIL) ``condition`` holds."""

    mode: str = "WHILE"
    condition: Optional[Expr] = None
    body: Optional[Statement] = None


@dataclass
class ForRange(Statement):
    """Count ``var`` from ``start`` to ``end`` (inclusive) by ``step``."""

    var: str = ""
    start: Optional[Expr] = None
    end: Optional[Expr] = None
    step: Optional[Expr] = None
    body: Optional[Statement] = None


@dataclass
class ForEach(Statement):
    var: str = ""
    source: Optional[Expr] = None
    body: Optional[Statement] = None


@dataclass
class FlowStatement(Statement):
    """``break`` or ``continue``."""

    flow: str = "BREAK"


# -- math --------------------------------------------------------------------


@dataclass
class NumberLiteral(Expr):
    value: float = 0


@dataclass
class Arithmetic(Expr):
    """Binary arithmetic; ``op`` is ADD, MINUS, MULTIPLY, DIVIDE or POWER."""

    op: str = "ADD"
    a: Optional[Expr] = None
    b: Optional[Expr] = None


@dataclass
class MathSingle(Expr):
    """Single operand maths: negation, roots, logarithms, rounding and trigonometry."""

    op: str = "ROOT"
    num: Optional[Expr] = None


@dataclass
class MathConstant(Expr):
    constant: str = "PI"


@dataclass
class NumberProperty(Expr):
    """Test ``number`` for EVEN, ODD, PRIME, WHOLE, POSITIVE, NEGATIVE or DIVISIBLE_BY."""

    prop: str = "EVEN"
    number: Optional[Expr] = None
    divisor: Optional[Expr] = None


@dataclass
class MathChange(Statement):
    """Add ``delta`` to a variable in place."""

    var: str = ""
    delta: Optional[Expr] = None


@dataclass
class MathOnList(Expr):
    """Aggregate a list: SUM, MIN, MAX, AVERAGE, MEDIAN, MODE, STD_DEV or RANDOM."""

    op: str = "SUM"
    source: Optional[Expr] = None


@dataclass
class Modulo(Expr):
    dividend: Optional[Expr] = None
    divisor: Optional[Expr] = None


@dataclass
class Constrain(Expr):
    value: Optional[Expr] = None
    low: Optional[Expr] = None
    high: Optional[Expr] = None


@dataclass
class RandomInt(Expr):
    low: Optional[Expr] = None
    high: Optional[Expr] = None


@dataclass
class RandomFloat(Expr):
    pass


@dataclass
class Atan2(Expr):
    x: Optional[Expr] = None
    y: Optional[Expr] = None


# -- text --------------------------------------------------------------------


@dataclass
class TextLiteral(Expr):
    text: str = ""


@dataclass
class MultilineText(Expr):
    text: str = ""


@dataclass
class TextJoin(Expr):
    """Concatenate ``items``; empty slots are kept as ``None``."""

    items: List[Optional[Expr]] = field(default_factory=list)


@dataclass
class TextAppend(Statement):
    var: str = ""
    text: Optional[Expr] = None


@dataclass
class TextLength(Expr):
    value: Optional[Expr] = None


@dataclass
class TextIsEmpty(Expr):
    value: Optional[Expr] = None


@dataclass
class TextIndexOf(Expr):
    """Position of ``find`` in ``value``; ``end`` selects FIRST or LAST occurrence."""

    end: str = "FIRST"
    value: Optional[Expr] = None
    find: Optional[Expr] = None


@dataclass
class TextCharAt(Expr):
    """Letter of ``value``; ``where`` is FROM_START, FROM_END, FIRST, LAST or RANDOM."""

    where: str = "FROM_START"
    value: Optional[Expr] = None
    at: Optional[Expr] = None


@dataclass
class TextGetSubstring(Expr):
    value: Optional[Expr] = None
    where1: str = "FROM_START"
    at1: Optional[Expr] = None
    where2: str = "FROM_START"
    at2: Optional[Expr] = None


@dataclass
class TextChangeCase(Expr):
    case: str = "UPPERCASE"
    text: Optional[Expr] = None


@dataclass
class TextTrim(Expr):
    mode: str = "BOTH"
    text: Optional[Expr] = None


@dataclass
class TextPrint(Statement):
    text: Optional[Expr] = None


@dataclass
class TextPrompt(Expr):
    """Read a line from the user.

    The message is either a connected block (``message``) or text typed into
    the block itself (``message_text``).
    """

    kind: str = "TEXT"
    message: Optional[Expr] = None
    message_text: Optional[str] = None


@dataclass
class TextCount(Expr):
    text: Optional[Expr] = None
    sub: Optional[Expr] = None


@dataclass
class TextReplace(Expr):
    text: Optional[Expr] = None
    old: Optional[Expr] = None
    new: Optional[Expr] = None


@dataclass
class TextReverse(Expr):
    text: Optional[Expr] = None


# -- lists -------------------------------------------------------------------


@dataclass
class ListCreateEmpty(Expr):
    pass


@dataclass
class ListCreateWith(Expr):
    items: List[Optional[Expr]] = field(default_factory=list)


@dataclass
class ListRepeat(Expr):
    item: Optional[Expr] = None
    count: Optional[Expr] = None


@dataclass
class ListLength(Expr):
    value: Optional[Expr] = None


@dataclass
class ListIsEmpty(Expr):
    value: Optional[Expr] = None


@dataclass
class ListIndexOf(Expr):
    end: str = "FIRST"
    source: Optional[Expr] = None
    find: Optional[Expr] = None


@dataclass
class ListGetIndex(Expr):
    """Read (``mode`` GET) or read and remove (GET_REMOVE) one list element."""

    mode: str = "GET"
    where: str = "FROM_START"
    source: Optional[Expr] = None
    at: Optional[Expr] = None


@dataclass
class ListRemoveIndex(Statement):
    """Remove one list element without using it."""

    where: str = "FROM_START"
    source: Optional[Expr] = None
    at: Optional[Expr] = None


@dataclass
class ListSetIndex(Statement):
    """Replace (``mode`` SET) or insert (INSERT) a list element."""

    mode: str = "SET"
    where: str = "FROM_START"
    source: Optional[Expr] = None
    at: Optional[Expr] = None
    to: Optional[Expr] = None


@dataclass
class ListGetSublist(Expr):
    source: Optional[Expr] = None
    where1: str = "FROM_START"
    at1: Optional[Expr] = None
    where2: str = "FROM_START"
    at2: Optional[Expr] = None


@dataclass
class ListSort(Expr):
    """Sort a copy of ``source``; ``kind`` is NUMERIC, TEXT or IGNORE_CASE."""

    source: Optional[Expr] = None
    kind: str = "NUMERIC"
    direction: int = 1


@dataclass
class ListSplit(Expr):
    """SPLIT text into a list or JOIN a list into text."""

    mode: str = "SPLIT"
    input: Optional[Expr] = None
    delimiter: Optional[Expr] = None


@dataclass
class ListReverse(Expr):
    source: Optional[Expr] = None


# -- colour ------------------------------------------------------------------


@dataclass
class ColourPicker(Expr):
    colour: str = "#ff0000"


@dataclass
class ColourRandom(Expr):
    pass


@dataclass
class ColourRgb(Expr):
    red: Optional[Expr] = None
    green: Optional[Expr] = None
    blue: Optional[Expr] = None


@dataclass
class ColourBlend(Expr):
    colour1: Optional[Expr] = None
    colour2: Optional[Expr] = None
    ratio: Optional[Expr] = None


# -- variables ---------------------------------------------------------------


@dataclass
class VariableGet(Expr):
    var: str = ""


@dataclass
class VariableSet(Statement):
    var: str = ""
    value: Optional[Expr] = None


# -- procedures --------------------------------------------------------------


@dataclass
class ProcedureDef(Block):
    """A user function; rendered into the definitions preamble, not the body."""

    name: str = ""
    params: List[str] = field(default_factory=list)
    body: Optional[Statement] = None
    return_value: Optional[Expr] = None
    has_return: bool = False


@dataclass
class ProcedureCall(Expr):
    name: str = ""
    args: List[Optional[Expr]] = field(default_factory=list)


@dataclass
class ProcedureCallStatement(Statement):
    name: str = ""
    args: List[Optional[Expr]] = field(default_factory=list)


@dataclass
class ProcedureIfReturn(Statement):
    condition: Optional[Expr] = None
    value: Optional[Expr] = None
    has_return_value: bool = True


# -- traversal ---------------------------------------------------------------

_META_FIELDS = frozenset({"id", "comment", "disabled", "next"})


def _flatten(value: object) -> Iterator[Block]:
    if isinstance(value, Block):
        yield value
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _flatten(item)
    elif is_dataclass(value) and not isinstance(value, type):
        for f in fields(value):
            yield from _flatten(getattr(value, f.name))


def iter_children(block: Block) -> Iterator[Block]:
    """Yield the blocks plugged into ``block``: values and statement bodies, not ``next``."""

    for f in fields(block):
        if f.name in _META_FIELDS:
            continue
        yield from _flatten(getattr(block, f.name))


def value_inputs(block: Block) -> List[Expr]:
    """Blocks connected to the value inputs of ``block``, in input order."""

    return [child for child in iter_children(block) if isinstance(child, Expr)]


def iter_descendants(block: Block) -> Iterator[Block]:
    """Depth-first walk over ``block``, everything inside it and everything after it."""

    current: Optional[Block] = block
    while current is not None:
        yield current
        for child in iter_children(current):
            yield from iter_descendants(child)
        current = current.next if isinstance(current, Statement) else None


def used_variables(program: Program) -> List[str]:
    """Variable ids referenced anywhere in ``program``, in first-use order."""

    seen: List[str] = []
    for top in program.blocks:
        for block in iter_descendants(top):
            refs: List[str] = []
            if isinstance(block, ProcedureDef):
                refs.extend(block.params)
            var = getattr(block, "var", None)
            if var:
                refs.append(var)
            for ref in refs:
                if ref not in seen:
                    seen.append(ref)
    return seen
