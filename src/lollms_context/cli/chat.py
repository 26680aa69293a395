from __future__ import annotations

from prompt_toolkit import PromptSession
from rich.console import Console
from rich.panel import Panel

from ..config.settings import ConfigurationError
from ..services.llm.stream import EndOfTurn, StreamError, TextChunk
from ..workflow.orchestrator import ContextWorkspace


class ChatLoop:
    """
    Interactive chat over the generated context.

    `/refresh` rebuilds the context (and starts a new exchange), `/quit`
    leaves. Replies are printed as they stream.
    """

    def __init__(self, workspace: ContextWorkspace, console: Console, custom_prompt: str = "") -> None:
        self.workspace = workspace
        self.console = console
        self.custom_prompt = custom_prompt
        self.session: PromptSession = PromptSession()

    async def run(self) -> None:
        if not await self._refresh():
            return

        while True:
            try:
                text = (await self.session.prompt_async("lollms> ")).strip()
            except (KeyboardInterrupt, EOFError):
                break

            if not text:
                continue
            if text in {"/quit", "/exit"}:
                break
            if text == "/refresh":
                await self._refresh()
                continue
            await self._turn(text)

        self.console.print("\n[cyan]Goodbye![/]")

    async def _refresh(self) -> bool:
        self.console.print("[dim]Generating context...[/]")
        try:
            document = await self.workspace.generate_context(self.custom_prompt)
        except ConfigurationError as exc:
            self.console.print(f"[red]{exc}[/]")
            return False

        self.console.print(Panel.fit(
            f"{len(document.files)} files in tree, {len(document.content_files)} with content\n"
            "Context loaded. You can now start the discussion.",
            border_style="cyan",
        ))
        return True

    async def _turn(self, text: str) -> None:
        async for event in self.workspace.send_chat_turn(text):
            if isinstance(event, TextChunk):
                self.console.print(event.text, end="", markup=False, highlight=False, soft_wrap=True)
            elif isinstance(event, StreamError):
                self.console.print(f"\n[red]{event.message}[/]")
            elif isinstance(event, EndOfTurn):
                self.console.print()
