from __future__ import annotations

import logging
from pathlib import Path
from typing import AsyncIterator, Iterable, Optional

import httpx

from ..config.settings import ConfigurationError, ContextSettings, get_settings
from ..domain.models import ContextDocument, InclusionPolicy
from ..persistence.store import ErrorReporter, StatePersistence
from ..services.chat.session import ChatSession
from ..services.context.assembler import ContextAssembler
from ..services.llm.stream import RelayEvent, StreamRelay
from ..services.state.notifier import ChangeCallback, ChangeNotifier, Subscription
from ..services.state.store import StateStore
from ..services.workspace.filesystem import FileSystem, LocalFileSystem, PathLike


LOG = logging.getLogger(__name__)


class ContextWorkspace:
    """
    One workspace session: the shared policy store plus everything derived
    from it. Construct it once and hand it to every consumer.
    """

    def __init__(
        self,
        settings: Optional[ContextSettings] = None,
        *,
        fs: Optional[FileSystem] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        report_error: Optional[ErrorReporter] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.fs = fs or LocalFileSystem()
        self.notifier = ChangeNotifier()
        self.persistence = StatePersistence(self.settings.state_file, fs=self.fs, report_error=report_error)
        self.store = StateStore(self.persistence, notifier=self.notifier, fs=self.fs)
        self.assembler = ContextAssembler(self.store, settings=self.settings, fs=self.fs)
        self.relay = StreamRelay(self.settings, client=http_client)
        self.chat = ChatSession(self.relay)
        self.last_custom_prompt = ""

    @property
    def root(self) -> Optional[Path]:
        return self.settings.workspace_root

    async def open(self) -> None:
        if self.root is None:
            LOG.info("No workspace open; context state is kept in memory only")
        await self.store.load()

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        return self.notifier.subscribe(callback)

    # ------------------------------------------------------------------ Policies
    async def cycle_policy(self, path: PathLike) -> InclusionPolicy:
        return await self.store.cycle(path)

    async def set_policy(
        self,
        paths: Iterable[PathLike],
        policy: InclusionPolicy,
        *,
        include_directories: bool = False,
    ) -> int:
        touched = await self.store.set_many(paths, policy, include_directories=include_directories)
        return len(touched)

    # ------------------------------------------------------------------ Context
    async def generate_context(self, custom_prompt: str = "") -> ContextDocument:
        if self.root is None:
            raise ConfigurationError("No folder is open.")
        document = await self.assembler.assemble(self.root, custom_prompt)
        self.last_custom_prompt = custom_prompt
        self.chat.reset(document)
        return document

    async def remove_file(self, path: PathLike) -> ContextDocument:
        await self.store.set_many([path], InclusionPolicy.TREE_ONLY)
        return await self.generate_context(self.last_custom_prompt)

    # ------------------------------------------------------------------ Chat
    def send_chat_turn(self, text: str) -> AsyncIterator[RelayEvent]:
        return self.chat.send_turn(text)
