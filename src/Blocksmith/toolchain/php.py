from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

PHP_OPEN_TAG = "<?php\n"


def ensure_php() -> None:
    try:
        subprocess.run(["php", "--version"], check=True, stdout=subprocess.DEVNULL)
    except Exception as e:
        raise RuntimeError(
            "PHP interpreter (php) not found. Install the PHP CLI and make sure it is on PATH."
        ) from e


def write_script(path: str | Path, code: str, *, open_tag: bool = True) -> Path:
    """Write generated ``code`` to ``path`` as a runnable PHP script."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if open_tag and not code.lstrip().startswith("<?php"):
        code = PHP_OPEN_TAG + code
    path.write_text(code, encoding="utf-8")
    logger.debug("Wrote %d characters of PHP to %s", len(code), path)
    return path


def lint_script(path: str | Path) -> bool:
    """Run ``php -l`` on ``path`` and report whether the syntax check passed."""

    result = subprocess.run(
        ["php", "-l", str(path)],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    if result.returncode != 0:
        logger.warning("php -l rejected %s: %s", path, (result.stderr or result.stdout).strip())
        return False
    return True


def run_script(path: str | Path) -> str:
    """Execute ``path`` with the PHP CLI and return its standard output."""

    result = subprocess.run(
        ["php", str(path)],
        check=True,
        stdout=subprocess.PIPE,
        text=True,
    )
    return result.stdout
