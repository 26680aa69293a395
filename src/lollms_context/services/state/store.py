from __future__ import annotations

import asyncio
import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from ...domain.models import CYCLE_ORDER, InclusionPolicy
from ...persistence.store import StatePersistence
from ..workspace.filesystem import FileSystem, LocalFileSystem, PathLike, collect_files, normalize_path, parent_path
from .notifier import ChangeNotifier


LOG = logging.getLogger(__name__)


class StateStore:
    """
    Sparse map from canonical path to explicit inclusion policy.

    `TreeOnly` is never stored: removing an entry is how a path returns to
    it. Exclusion is inherited by every descendant; the other policies apply
    only to the path that carries them.

    Every mutator follows the same sequence: update the map, persist a
    snapshot, then notify subscribers with the touched paths.
    """

    def __init__(
        self,
        persistence: StatePersistence,
        notifier: Optional[ChangeNotifier] = None,
        fs: Optional[FileSystem] = None,
    ) -> None:
        self.persistence = persistence
        self.notifier = notifier or ChangeNotifier()
        self.fs = fs or LocalFileSystem()
        self._policies: Dict[str, InclusionPolicy] = {}
        self._save_lock = asyncio.Lock()

    # ------------------------------------------------------------------ Reads
    def explicit_policy(self, path: PathLike) -> InclusionPolicy:
        return self._policies.get(normalize_path(path), InclusionPolicy.TREE_ONLY)

    def effective_policy(self, path: PathLike) -> InclusionPolicy:
        key = normalize_path(path)
        current = key
        while True:
            if self._policies.get(current) is InclusionPolicy.EXCLUDED:
                return InclusionPolicy.EXCLUDED
            parent = parent_path(current)
            if parent == current:
                break
            current = parent
        return self._policies.get(key, InclusionPolicy.TREE_ONLY)

    def is_excluded(self, path: PathLike) -> bool:
        return self.effective_policy(path) is InclusionPolicy.EXCLUDED

    def entries(self) -> List[Tuple[str, InclusionPolicy]]:
        return sorted(self._policies.items())

    def __len__(self) -> int:
        return len(self._policies)

    # ------------------------------------------------------------------ Mutations
    async def load(self) -> None:
        self._policies = await asyncio.to_thread(self.persistence.load)
        LOG.debug("Loaded %d context state entries", len(self._policies))
        self.notifier.fire(())

    async def cycle(self, path: PathLike) -> InclusionPolicy:
        """
        Advance the path's own entry TreeOnly -> FullContent -> SignaturesOnly
        -> TreeOnly. Inherited exclusion is ignored; only this path changes.
        """
        key = normalize_path(path)
        next_policy = CYCLE_ORDER[self.explicit_policy(key)]
        await self._commit([key], next_policy)
        return next_policy

    async def set_many(
        self,
        roots: Iterable[PathLike],
        policy: InclusionPolicy,
        *,
        include_directories: bool = False,
    ) -> FrozenSet[str]:
        """
        Apply `policy` to every file beneath `roots` (files stand for
        themselves). Missing or unreadable entries are logged and skipped.
        """
        expanded = await asyncio.to_thread(
            collect_files, self.fs, list(roots), self.skips_state_dir, include_directories
        )
        return await self._commit(expanded, policy)

    def skips_state_dir(self, path: str, is_dir: bool) -> bool:
        return is_dir and path == self.persistence.state_dir

    async def _commit(self, paths: List[str], policy: InclusionPolicy) -> FrozenSet[str]:
        touched = list(dict.fromkeys(paths))
        for key in touched:
            if policy is InclusionPolicy.TREE_ONLY:
                self._policies.pop(key, None)
            else:
                self._policies[key] = policy

        # Snapshot under the lock so a later save always carries every earlier change.
        async with self._save_lock:
            snapshot = dict(self._policies)
            await asyncio.to_thread(self.persistence.save, snapshot)
        return self.notifier.fire(touched)
