"""Per-pass generation state: the definitions preamble and shared helpers."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .errors import HelperTemplateError, SessionClosedError
from .names import PROCEDURE, NameDB

logger = logging.getLogger(__name__)

FUNCTION_NAME_PLACEHOLDER = "{__blocksmith_function_name__}"

# Helper bodies are written with two-space indents.
_LEADING_INDENT_RE = re.compile(r"^((?:  )*)  ", re.MULTILINE)


@dataclass
class HelperRecord:
    """A shared helper function that has been named and emitted once."""

    desired_name: str
    function_name: str
    lines: List[str] = field(default_factory=list)


def _reindent(code: str, indent: str) -> str:
    if indent == "  ":
        return code
    previous = None
    while previous != code:
        previous = code
        code = _LEADING_INDENT_RE.sub(lambda m: m.group(1) + "\0", code)
    return code.replace("\0", indent)


class Session:
    """State owned by exactly one generation pass.

    ``definitions`` keeps insertion order and ends up, joined, ahead of the
    generated body.  A session is single use: once :meth:`finish` has run
    every further call raises :class:`SessionClosedError`.
    """

    def __init__(self, name_db: NameDB, *, indent: str = "  ") -> None:
        self.name_db = name_db
        self.indent = indent
        self.definitions: Dict[str, str] = {}
        self.helpers: Dict[str, HelperRecord] = {}
        self.closed = False

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError("Generation session has already finished.")

    def add_definition(self, key: str, code: str) -> None:
        """Store ``code`` in the preamble under ``key``, replacing any previous entry."""

        self._ensure_open()
        self.definitions[key] = code

    def provide_function(self, desired_name: str, lines: Sequence[str]) -> str:
        """Define a helper function once and return its final name.

        ``lines`` must mention :data:`FUNCTION_NAME_PLACEHOLDER` wherever the
        function refers to itself.  A second request for ``desired_name``
        returns the existing name and ignores the new body.
        """

        self._ensure_open()
        record = self.helpers.get(desired_name)
        if record is not None:
            return record.function_name

        code = "\n".join(lines)
        if FUNCTION_NAME_PLACEHOLDER not in code:
            raise HelperTemplateError(
                f"Helper '{desired_name}' does not contain the function name placeholder."
            )
        function_name = self.name_db.get_distinct_name(desired_name, PROCEDURE)
        code = _reindent(code.replace(FUNCTION_NAME_PLACEHOLDER, function_name), self.indent)
        self.helpers[desired_name] = HelperRecord(desired_name, function_name, list(lines))
        self.definitions[desired_name] = code
        logger.debug("Registered helper %s as %s", desired_name, function_name)
        return function_name

    def finish(self, code: str) -> str:
        """Prepend the definitions to ``code`` and close the session."""

        self._ensure_open()
        definitions = list(self.definitions.values())
        self.definitions = {}
        self.helpers = {}
        self.name_db.reset()
        self.closed = True
        logger.debug("Session finished with %d definitions", len(definitions))
        return "\n\n".join(definitions) + "\n\n\n" + code
