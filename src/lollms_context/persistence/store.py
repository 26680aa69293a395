from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Callable, Dict, Mapping, Optional

from ..domain.models import InclusionPolicy
from ..services.workspace.filesystem import FileSystem, LocalFileSystem, normalize_path


LOG = logging.getLogger(__name__)

ErrorReporter = Callable[[str], None]
PolicyMap = Dict[str, InclusionPolicy]


class StateFileError(ValueError):
    """Raised when the state file does not match the `[[path, tag], ...]` schema."""


def encode_state(policies: Mapping[str, InclusionPolicy]) -> str:
    pairs = [[path, policy.value] for path, policy in sorted(policies.items())]
    return json.dumps(pairs, indent=2)


def decode_state(text: str) -> PolicyMap:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise StateFileError(f"Invalid JSON: {exc}") from exc

    if not isinstance(raw, list):
        raise StateFileError("Expected a list of [path, policy] pairs.")

    policies: PolicyMap = {}
    for item in raw:
        if not isinstance(item, list) or len(item) != 2:
            raise StateFileError(f"Malformed entry: {item!r}")
        path, tag = item
        if not isinstance(path, str) or not isinstance(tag, str):
            raise StateFileError(f"Malformed entry: {item!r}")
        try:
            policies[path] = InclusionPolicy.from_tag(tag)
        except ValueError as exc:
            raise StateFileError(str(exc)) from exc
    return policies


class StatePersistence:
    """
    Durable mirror of the policy map in `<workspace>/.lollms/context_state.json`.

    Without a state file (no workspace open) every operation is a no-op and
    the map lives in memory only. Failures never raise: they are logged and
    passed to `report_error` so the caller can surface them.
    """

    def __init__(
        self,
        state_file: Optional[Path],
        fs: Optional[FileSystem] = None,
        report_error: Optional[ErrorReporter] = None,
    ) -> None:
        self.state_file = state_file
        self.fs = fs or LocalFileSystem()
        self._report_error = report_error
        self._lock = Lock()

    @property
    def enabled(self) -> bool:
        return self.state_file is not None

    @property
    def state_dir(self) -> Optional[str]:
        """Canonical path of the directory holding the state file."""
        if self.state_file is None:
            return None
        return normalize_path(self.state_file.parent)

    def save(self, policies: Mapping[str, InclusionPolicy]) -> bool:
        if self.state_file is None:
            return True

        path = str(self.state_file)
        try:
            with self._lock:
                directory = os.path.dirname(path)
                if not self.fs.exists(directory):
                    self.fs.make_dirs(directory)
                self.fs.write_bytes(path, encode_state(policies).encode("utf-8"))
        except OSError as exc:
            LOG.error("Failed to save context state to %s: %s", path, exc)
            self._report("Failed to save context state.")
            return False
        return True

    def load(self) -> PolicyMap:
        if self.state_file is None:
            return {}

        path = str(self.state_file)
        try:
            if not self.fs.exists(path):
                return {}
            text = self.fs.read_bytes(path).decode("utf-8")
            return decode_state(text)
        except (OSError, UnicodeDecodeError, StateFileError) as exc:
            LOG.error("Failed to load context state from %s, resetting: %s", path, exc)
            self._report(f"Could not load context state from {self.state_file.parent.name} folder.")
            return {}

    def _report(self, message: str) -> None:
        if self._report_error is not None:
            self._report_error(message)
