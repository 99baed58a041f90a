"""Exceptions raised while loading workspaces and generating PHP."""

from __future__ import annotations


class BlocksmithError(Exception):
    """Base exception for the package."""

    pass


class GenerationError(BlocksmithError):
    """A generation pass cannot complete and has been aborted."""

    pass


class UnsupportedConstructError(GenerationError):
    """Raised when a construct, or one of its mode combinations, has no renderer."""

    def __init__(self, construct: str, detail: str = "") -> None:
        self.construct = construct
        self.detail = detail
        message = f"Unhandled combination ({construct})"
        if detail:
            message += f": {detail}"
        super().__init__(message + ".")


class NameExhaustedError(GenerationError):
    """The naming database could not produce a unique identifier."""

    pass


class HelperTemplateError(GenerationError):
    """A helper function body is missing its name placeholder."""

    pass


class SessionClosedError(GenerationError):
    """A generation session was used before ``init`` or after ``finish``."""

    pass


class WorkspaceParseError(BlocksmithError, ValueError):
    """The serialised workspace could not be turned into a program."""

    pass
