from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from lollms_context.cli.app import app
from lollms_context.config.settings import ConfigurationError
from lollms_context.workflow.orchestrator import ContextWorkspace


runner = CliRunner()


def _state(workspace: Path) -> list:
    return json.loads((workspace / ".lollms" / "context_state.json").read_text(encoding="utf-8"))


def test_set_expands_directory_and_persists(workspace: Path) -> None:
    workspace = workspace.resolve()
    result = runner.invoke(app, ["--root", str(workspace), "set", "signatures", str(workspace / "b")])

    assert result.exit_code == 0, result.output
    assert _state(workspace) == [[str(workspace / "b" / "c.js"), "signatures"]]


def test_set_with_tree_records_directory(workspace: Path) -> None:
    workspace = workspace.resolve()
    result = runner.invoke(
        app, ["--root", str(workspace), "set", "excluded", "--tree", str(workspace / "b")]
    )

    assert result.exit_code == 0, result.output
    assert [path for path, _ in _state(workspace)] == [str(workspace / "b"), str(workspace / "b" / "c.js")]


def test_cycle_then_remove(workspace: Path) -> None:
    workspace = workspace.resolve()
    target = str(workspace / "a.py")

    assert runner.invoke(app, ["--root", str(workspace), "cycle", target]).exit_code == 0
    assert _state(workspace) == [[target, "fullContent"]]

    result = runner.invoke(app, ["--root", str(workspace), "remove", target])

    assert result.exit_code == 0, result.output
    assert _state(workspace) == []


def test_list_without_entries(workspace: Path) -> None:
    workspace = workspace.resolve()
    result = runner.invoke(app, ["--root", str(workspace), "list"])

    assert result.exit_code == 0
    assert "No explicit policies recorded" in result.output


def test_generate_prints_document(workspace: Path) -> None:
    workspace = workspace.resolve()
    runner.invoke(app, ["--root", str(workspace), "cycle", str(workspace / "a.py")])

    result = runner.invoke(app, ["--root", str(workspace), "generate", "--prompt", "Explain foo."])

    assert result.exit_code == 0, result.output
    assert result.output.startswith("## Custom Instructions\n\nExplain foo.\n")
    assert "└─ 📄 a.py [+]" in result.output
    assert "### `a.py`" in result.output


def test_generate_writes_output_file(workspace: Path, tmp_path: Path) -> None:
    workspace = workspace.resolve()
    output = tmp_path / "context.md"

    result = runner.invoke(app, ["--root", str(workspace), "generate", "-o", str(output)])

    assert result.exit_code == 0, result.output
    assert output.read_text(encoding="utf-8").startswith("## Custom Instructions")
    assert "Wrote" in result.output


def test_generate_without_folder_exits_with_error(monkeypatch, workspace: Path) -> None:
    async def no_folder(self, custom_prompt: str = ""):
        raise ConfigurationError("No folder is open.")

    monkeypatch.setattr(ContextWorkspace, "generate_context", no_folder)

    result = runner.invoke(app, ["--root", str(workspace), "generate"])

    assert result.exit_code == 1
    assert "No folder is open." in result.output


def test_status_reports_policies(workspace: Path) -> None:
    workspace = workspace.resolve()
    runner.invoke(app, ["--root", str(workspace), "set", "excluded", "--tree", str(workspace / "b")])

    result = runner.invoke(app, ["--root", str(workspace), "status", str(workspace / "b" / "c.js")])

    assert result.exit_code == 0, result.output
    assert "Context Policy" in result.output
    assert "excluded" in result.output
