from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List

import httpx
import pytest

from lollms_context.config.settings import ConfigurationError, ContextSettings
from lollms_context.domain.models import InclusionPolicy
from lollms_context.services.llm.stream import EndOfTurn, RelayEvent, TextChunk
from lollms_context.services.workspace.filesystem import normalize_path
from lollms_context.workflow.orchestrator import ContextWorkspace

from mocks import RecordingSubscriber


def _open(workspace: ContextWorkspace) -> ContextWorkspace:
    asyncio.run(workspace.open())
    return workspace


def test_generate_context_requires_open_folder() -> None:
    workspace = _open(ContextWorkspace(ContextSettings()))

    with pytest.raises(ConfigurationError, match="No folder is open."):
        asyncio.run(workspace.generate_context())


def test_policies_survive_reopening(settings: ContextSettings, workspace: Path) -> None:
    first = _open(ContextWorkspace(settings))
    assert asyncio.run(first.set_policy([workspace], InclusionPolicy.SIGNATURES)) == 2

    second = _open(ContextWorkspace(settings))

    assert second.store.effective_policy(workspace / "b" / "c.js") is InclusionPolicy.SIGNATURES


def test_open_fires_reload_to_subscribers(settings: ContextSettings) -> None:
    workspace = ContextWorkspace(settings)
    subscriber = RecordingSubscriber()
    workspace.subscribe(subscriber)

    asyncio.run(workspace.open())

    assert subscriber.calls == [frozenset()]


def test_remove_file_regenerates_with_last_prompt(settings: ContextSettings, workspace: Path) -> None:
    session = _open(ContextWorkspace(settings))
    asyncio.run(session.set_policy([workspace], InclusionPolicy.FULL_CONTENT))
    document = asyncio.run(session.generate_context("Focus on a.py"))
    assert len(document.content_files) == 2

    updated = asyncio.run(session.remove_file(workspace / "b" / "c.js"))

    assert updated.content_files == [normalize_path(workspace / "a.py")]
    assert updated.custom_prompt == "Focus on a.py"
    assert "Focus on a.py" in updated.markdown
    assert session.chat.exchange.messages[0].content == f"CONTEXT:\n{updated.markdown}"


def test_chat_turn_runs_against_generated_context(workspace: Path) -> None:
    bodies: List[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        frame = json.dumps({"choices": [{"delta": {"content": "It greets."}}]})
        return httpx.Response(200, content=f"data: {frame}\n\ndata: [DONE]\n\n".encode("utf-8"))

    settings = ContextSettings(workspace_root=workspace, host="http://lollms.local")
    session = _open(
        ContextWorkspace(settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    )
    asyncio.run(session.cycle_policy(workspace / "b" / "c.js"))
    document = asyncio.run(session.generate_context())

    async def run() -> List[RelayEvent]:
        return [event async for event in session.send_chat_turn("What does c.js do?")]

    events = asyncio.run(run())

    assert events == [TextChunk("It greets."), EndOfTurn()]
    assert bodies[0]["messages"] == [
        {"role": "system", "content": f"CONTEXT:\n{document.markdown}"},
        {"role": "user", "content": "What does c.js do?"},
    ]
    assert session.chat.exchange.messages[-1].content == "It greets."


def test_save_failure_is_reported(tmp_path: Path, workspace: Path) -> None:
    reports: List[str] = []
    # A regular file where the state directory should be makes saving fail.
    (workspace / ".lollms").write_text("", encoding="utf-8")
    session = _open(ContextWorkspace(ContextSettings(workspace_root=workspace), report_error=reports.append))

    asyncio.run(session.cycle_policy(workspace / "a.py"))

    assert reports == ["Failed to save context state."]
    assert session.store.explicit_policy(workspace / "a.py") is InclusionPolicy.FULL_CONTENT
