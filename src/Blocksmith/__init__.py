"""User-facing helpers for the Blocksmith block-to-PHP generator."""

from __future__ import annotations

__all__ = ["transpile_workspace"]
__version__ = "0.1.0"

from pathlib import Path
from typing import Any, Dict, Optional, Union

from Blocksmith.toolchain.php import ensure_php, lint_script, write_script
from Blocksmith.transpile.emitter import emit
from Blocksmith.transpile.errors import GenerationError
from Blocksmith.transpile.parser import parse, parse_workspace


def transpile_workspace(
    source: Union[str, Path, Dict[str, Any]],
    *,
    output: Optional[Union[str, Path]] = None,
    lint: bool = False,
    **options: Any,
) -> str:
    """Generate PHP for a Blockly workspace.

    Parameters
    ----------
    source:
        Workspace JSON text, a path to a ``.json`` file, or an already
        decoded workspace document.
    output:
        When given, the generated code is written there as a PHP script.
    lint:
        Run ``php -l`` on the written script.  Requires ``output``.
    options:
        Overrides for :class:`~Blocksmith.transpile.generator.GeneratorOptions`
        such as ``one_based_index`` or ``indent``.
    """

    if isinstance(source, dict):
        program = parse_workspace(source)
    elif isinstance(source, Path) or (
        isinstance(source, str) and not source.lstrip().startswith("{")
    ):
        program = parse(Path(source).read_text(encoding="utf-8"))
    else:
        program = parse(source)

    code = emit(program, **options)

    if output is not None:
        script = write_script(output, code)
        if lint:
            ensure_php()
            if not lint_script(script):
                raise GenerationError(f"Generated script {script} failed the PHP syntax check.")
    elif lint:
        raise ValueError("lint=True requires an output path")

    return code
