from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import ClassVar, Optional, Tuple


class ConfigurationError(RuntimeError):
    """Raised when an operation needs a workspace or endpoint that is not configured."""


@dataclass
class ContextSettings:
    """
    Central configuration for a workspace session.

    Values come from the environment (see `get_settings`); the CLI overrides
    `workspace_root` with the directory it was started in.
    """

    workspace_root: Optional[Path] = None
    host: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    request_timeout_seconds: int = 60
    ignore_patterns: Tuple[str, ...] = ()
    respect_gitignore: bool = False

    STATE_DIR_NAME: ClassVar[str] = ".lollms"
    STATE_FILE_NAME: ClassVar[str] = "context_state.json"
    CHAT_COMPLETIONS_PATH: ClassVar[str] = "/v1/chat/completions"
    TEMPERATURE: ClassVar[float] = 0.1
    TOP_P: ClassVar[float] = 0.95

    @property
    def state_file(self) -> Optional[Path]:
        """Location of the persisted policy map, or None when no workspace is open."""
        if self.workspace_root is None:
            return None
        return self.workspace_root / self.STATE_DIR_NAME / self.STATE_FILE_NAME

    @property
    def chat_endpoint(self) -> Optional[str]:
        if not self.host:
            return None
        return f"{self.host.rstrip('/')}{self.CHAT_COMPLETIONS_PATH}"


def get_settings() -> ContextSettings:
    settings = ContextSettings()

    workspace = os.getenv("LOLLMS_WORKSPACE")
    if workspace:
        settings.workspace_root = Path(workspace).expanduser().resolve()

    host = os.getenv("LOLLMS_HOST")
    if host:
        settings.host = host

    api_key = os.getenv("LOLLMS_API_KEY")
    if api_key:
        settings.api_key = api_key

    model = os.getenv("LOLLMS_MODEL")
    if model:
        settings.model = model

    timeout = os.getenv("LOLLMS_TIMEOUT")
    if timeout:
        try:
            settings.request_timeout_seconds = int(timeout)
        except ValueError:
            pass

    raw_ignore = os.getenv("LOLLMS_IGNORE")
    if raw_ignore:
        settings.ignore_patterns = tuple(p.strip() for p in raw_ignore.split(",") if p.strip())

    respect_gitignore = os.getenv("LOLLMS_RESPECT_GITIGNORE")
    if respect_gitignore is not None:
        settings.respect_gitignore = respect_gitignore.lower() in {"1", "true", "yes"}

    return settings
