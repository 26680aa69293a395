from __future__ import annotations

from pathlib import Path

import pytest

from lollms_context.config.settings import ContextSettings
from lollms_context.persistence.store import StatePersistence
from lollms_context.services.state.store import StateStore


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    (root / "a.py").write_text("def foo(x, y):\n    return x\n", encoding="utf-8")
    (root / "b").mkdir()
    (root / "b" / "c.js").write_text(
        "export function greet(name) {\n  return `hi ${name}`;\n}\n"
        "export const add = (a, b) => a + b;\n",
        encoding="utf-8",
    )
    return root


@pytest.fixture()
def settings(workspace: Path) -> ContextSettings:
    return ContextSettings(workspace_root=workspace)


@pytest.fixture()
def store(settings: ContextSettings) -> StateStore:
    return StateStore(StatePersistence(settings.state_file))
