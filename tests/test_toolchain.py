from __future__ import annotations

import json
import subprocess

import pytest

from Blocksmith import transpile_workspace
from Blocksmith.toolchain import php
from Blocksmith.toolchain.php import ensure_php, lint_script, run_script, write_script
from Blocksmith.transpile.errors import GenerationError

WORKSPACE = {
    "blocks": {
        "blocks": [
            {"type": "text_print", "inputs": {"TEXT": {"block": {"type": "text", "fields": {"TEXT": "hi"}}}}}
        ]
    }
}


class _FakeRun:
    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.calls: list = []

    def __call__(self, args, **kwargs):
        self.calls.append((args, kwargs))
        return subprocess.CompletedProcess(args, self.returncode, self.stdout, self.stderr)


def test_write_script_adds_open_tag(tmp_path) -> None:
    path = write_script(tmp_path / "out" / "main.php", "print('hi');\n")
    assert path == tmp_path / "out" / "main.php"
    assert path.read_text(encoding="utf-8") == "<?php\nprint('hi');\n"


def test_write_script_keeps_existing_tag(tmp_path) -> None:
    path = write_script(tmp_path / "main.php", "<?php\necho 1;\n")
    assert path.read_text(encoding="utf-8").count("<?php") == 1


def test_write_script_without_tag(tmp_path) -> None:
    path = write_script(tmp_path / "main.php", "echo 1;\n", open_tag=False)
    assert path.read_text(encoding="utf-8") == "echo 1;\n"


def test_lint_script_reports_result(tmp_path, monkeypatch) -> None:
    script = tmp_path / "main.php"
    ok = _FakeRun(stdout="No syntax errors detected")
    monkeypatch.setattr(php.subprocess, "run", ok)
    assert lint_script(script)
    assert ok.calls[0][0] == ["php", "-l", str(script)]

    monkeypatch.setattr(php.subprocess, "run", _FakeRun(returncode=255, stderr="Parse error"))
    assert not lint_script(script)


def test_run_script_returns_stdout(tmp_path, monkeypatch) -> None:
    fake = _FakeRun(stdout="hi")
    monkeypatch.setattr(php.subprocess, "run", fake)
    assert run_script(tmp_path / "main.php") == "hi"
    assert fake.calls[0][1]["check"] is True


def test_ensure_php_missing_interpreter(monkeypatch) -> None:
    def missing(*args, **kwargs):
        raise FileNotFoundError("php")

    monkeypatch.setattr(php.subprocess, "run", missing)
    with pytest.raises(RuntimeError, match="php"):
        ensure_php()


def test_transpile_workspace_sources(tmp_path) -> None:
    expected = "print('hi');\n"
    assert transpile_workspace(WORKSPACE) == expected
    assert transpile_workspace(json.dumps(WORKSPACE)) == expected
    source = tmp_path / "workspace.json"
    source.write_text(json.dumps(WORKSPACE), encoding="utf-8")
    assert transpile_workspace(source) == expected
    assert transpile_workspace(str(source)) == expected


def test_transpile_workspace_writes_and_lints(tmp_path, monkeypatch) -> None:
    fake = _FakeRun()
    monkeypatch.setattr(php.subprocess, "run", fake)
    output = tmp_path / "build" / "main.php"

    transpile_workspace(WORKSPACE, output=output, lint=True, indent="\t")

    assert output.read_text(encoding="utf-8") == "<?php\nprint('hi');\n"
    assert [call[0][:2] for call in fake.calls] == [["php", "--version"], ["php", "-l"]]


def test_transpile_workspace_lint_failure(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(php.subprocess, "run", _FakeRun(returncode=255))
    with pytest.raises(GenerationError):
        transpile_workspace(WORKSPACE, output=tmp_path / "main.php", lint=True)


def test_transpile_workspace_lint_needs_output() -> None:
    with pytest.raises(ValueError):
        transpile_workspace(WORKSPACE, lint=True)
