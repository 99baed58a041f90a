"""Language-independent driver shared by every block emitter.

The generator walks a :class:`~Blocksmith.transpile.ast.Program`, hands each
block to :meth:`Generator.render` and takes care of everything handlers
should not repeat themselves: grouping child values according to their
precedence, shifting indexes, threading statement sequences, and attaching
comments.
"""

from __future__ import annotations

import logging
import re
import textwrap
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple, Union

from .ast import Block, Expr, Program, Statement, iter_descendants, value_inputs
from .errors import GenerationError, SessionClosedError
from .names import NameDB
from .precedence import Order, Rank, RenderedExpr, adjust_index, wrap
from .session import Session

logger = logging.getLogger(__name__)

Rendered = Union[str, RenderedExpr, None]


@dataclass
class GeneratorOptions:
    """Settings that apply to a whole generation pass."""

    one_based_index: bool = True
    indent: str = "  "
    comment_wrap: int = 60
    infinite_loop_trap: Optional[str] = None
    statement_prefix: Optional[str] = None
    statement_suffix: Optional[str] = None
    max_name_suffix: int = 10_000

    def validate(self) -> None:
        if not self.indent or self.indent.strip(" \t"):
            raise ValueError("indent must be a non-empty run of spaces or tabs")
        if self.comment_wrap < 10:
            raise ValueError("comment_wrap must be at least 10 columns")
        if self.max_name_suffix <= 0:
            raise ValueError("max_name_suffix must be positive")


class Generator:
    """Base class for emitters.

    Subclasses implement :meth:`render` for their construct catalog and set
    the lexical attributes below.
    """

    line_comment = "// "
    statement_terminator = ""
    variable_prefix = ""
    reserved_words: FrozenSet[str] = frozenset()
    # Block types that place the statement prefix and suffix themselves.
    manual_prefix_suffix: Tuple[type, ...] = ()

    def __init__(self, options: Optional[GeneratorOptions] = None) -> None:
        self.options = options or GeneratorOptions()
        self.options.validate()
        self.name_db = NameDB(
            self.reserved_words,
            self.variable_prefix,
            max_suffix=self.options.max_name_suffix,
        )
        self._session: Optional[Session] = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session:
        if self._session is None or self._session.closed:
            raise SessionClosedError("No generation session is active; call init() first.")
        return self._session

    def init(self, program: Program) -> None:
        """Start a fresh pass over ``program``, dropping any previous session."""

        if self._session is not None and not self._session.closed:
            logger.debug("Discarding unfinished generation session")
        self.name_db.reset()
        self.name_db.set_variable_map({var.id: var.name for var in program.variables})
        self._session = Session(self.name_db, indent=self.options.indent)

    def finish(self, code: str) -> str:
        """Prepend the collected definitions to ``code`` and end the pass."""

        session = self.session
        self._session = None
        return session.finish(code)

    def provide_function(self, desired_name: str, lines: list[str]) -> str:
        return self.session.provide_function(desired_name, lines)

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    def workspace_to_code(self, program: Program) -> str:
        """Generate source for every top-level block of ``program``."""

        self.init(program)
        chunks = []
        for block in program.blocks:
            line = self.block_to_code(block)
            if isinstance(line, RenderedExpr):
                line = line.text
            if not line:
                continue
            if isinstance(block, Expr):
                line = self.scrub_naked_value(line)
            chunks.append(line)
        code = self.finish("\n".join(chunks))
        code = re.sub(r"^\s+\n", "", code)
        code = re.sub(r"\n\s+\Z", "\n", code)
        code = re.sub(r"[ \t]+\n", "\n", code)
        return code

    def render(self, block: Block) -> Rendered:
        """Translate one block; returns statement text, a rendered value, or ``None``."""

        raise NotImplementedError

    def block_to_code(
        self,
        block: Optional[Block],
        this_only: bool = False,
        *,
        inline: bool = False,
    ) -> Union[str, RenderedExpr]:
        """Render ``block`` and, unless ``this_only``, the statements following it."""

        if block is None:
            return ""
        if block.disabled:
            logger.debug("Skipping disabled block %s", type(block).__name__)
            if this_only:
                return ""
            return self.block_to_code(getattr(block, "next", None))

        code = self.render(block)
        if isinstance(code, tuple):
            if not isinstance(block, Expr):
                raise GenerationError(
                    f"Expecting string from statement block: {type(block).__name__}"
                )
            text, rank = code
            return RenderedExpr(self.scrub(block, text, this_only, inline=inline), rank)
        if isinstance(code, str):
            if not isinstance(block, self.manual_prefix_suffix):
                if self.options.statement_prefix:
                    code = self.inject_id(self.options.statement_prefix, block) + code
                if self.options.statement_suffix:
                    code = code + self.inject_id(self.options.statement_suffix, block)
            return self.scrub(block, code, this_only, inline=inline)
        if code is None:
            # The handler wrote its output into the definitions itself.
            return ""
        raise GenerationError(f"Invalid code generated: {code!r}")

    def render_value(self, block: Optional[Block]) -> Optional[RenderedExpr]:
        """Render a child value, returning its text and rank, or ``None`` if it is missing."""

        if block is None:
            return None
        result = self.block_to_code(block, inline=True)
        if result == "":
            return None
        if not isinstance(result, RenderedExpr):
            raise GenerationError(f"Expecting tuple from value block: {type(block).__name__}")
        if not result.text:
            return None
        return result

    def value_to_code(self, block: Optional[Block], outer: Rank) -> str:
        """Render a child value for a context that binds as tightly as ``outer``.

        Returns ``""`` when nothing is connected so handlers can fall back to
        a default with ``or``.
        """

        rendered = self.render_value(block)
        if rendered is None:
            return ""
        return wrap(rendered.text, outer, rendered.rank)

    def statement_to_code(self, block: Optional[Statement]) -> str:
        """Render a nested statement sequence, indented one level."""

        code = self.block_to_code(block)
        if not isinstance(code, str):
            raise GenerationError(
                f"Expecting code from statement block: {type(block).__name__}"
            )
        if code:
            code = self.prefix_lines(code, self.options.indent)
        return code

    def get_adjusted(
        self,
        block: Optional[Block],
        delta: int = 0,
        negate: bool = False,
        order: Rank = Order.NONE,
    ) -> str:
        """Render an index input shifted to the workspace's index origin.

        ``order`` is the tightest operator the caller will apply to the
        result.
        """

        result = adjust_index(
            self.render_value(block),
            delta,
            negate,
            order,
            one_based=self.options.one_based_index,
        )
        return result.text

    # ------------------------------------------------------------------
    # Scrubbing
    # ------------------------------------------------------------------

    def scrub(
        self,
        block: Block,
        code: str,
        this_only: bool = False,
        *,
        inline: bool = False,
    ) -> str:
        """Attach comments to ``code`` and append the statements that follow ``block``.

        Blocks plugged into a parent (``inline``) leave their comments to the
        statement that consumes them.
        """

        comment_code = ""
        if not inline:
            if block.comment:
                comment = self.wrap_comment(block.comment)
                comment_code += self.prefix_lines(comment, self.line_comment) + "\n"
            for child in value_inputs(block):
                nested = self.all_nested_comments(child)
                if nested:
                    comment_code += self.prefix_lines(nested, self.line_comment)
        next_code = ""
        if not this_only:
            next_code = self.block_to_code(getattr(block, "next", None))
        return comment_code + code + next_code

    def scrub_naked_value(self, line: str) -> str:
        """Terminate a value that sits where a statement was expected."""

        return line + self.statement_terminator + "\n"

    def wrap_comment(self, text: str) -> str:
        width = self.options.comment_wrap - 3
        return "\n".join(
            textwrap.fill(
                line,
                width,
                break_long_words=False,
                break_on_hyphens=False,
            )
            for line in text.split("\n")
        )

    @staticmethod
    def all_nested_comments(block: Block) -> str:
        """Comments of ``block`` and everything inside it, one per line."""

        comments = [b.comment for b in iter_descendants(block) if b.comment]
        if comments:
            comments.append("")
        return "\n".join(comments)

    @staticmethod
    def prefix_lines(text: str, prefix: str) -> str:
        """Prepend ``prefix`` to every line of ``text`` except a trailing empty one."""

        return prefix + re.sub(r"\n(?!\Z)", lambda _m: "\n" + prefix, text)

    def add_loop_trap(self, branch: str, block: Block) -> str:
        indent = self.options.indent
        trap = self.options.infinite_loop_trap
        if trap:
            branch = self.prefix_lines(self.inject_id(trap, block), indent) + branch
        # The body reruns the loop's own suffix on entry and its prefix on the way back.
        if self.options.statement_suffix:
            branch = self.prefix_lines(self.inject_id(self.options.statement_suffix, block), indent) + branch
        if self.options.statement_prefix:
            branch = branch + self.prefix_lines(self.inject_id(self.options.statement_prefix, block), indent)
        return branch

    @staticmethod
    def inject_id(message: str, block: Block) -> str:
        block_id = (block.id or "").replace("\\", "\\\\").replace("'", "\\'")
        return message.replace("%1", f"'{block_id}'")
