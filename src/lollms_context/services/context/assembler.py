from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional

import pathspec  # pyright: ignore[reportMissingImports]

from ...config.settings import ContextSettings
from ...domain.models import ContextDocument, InclusionPolicy
from ..state.store import StateStore
from ..workspace.filesystem import FileSystem, LocalFileSystem, PathLike, collect_files, normalize_path, relative_posix
from .signatures import extract_signatures
from .tree import build_tree, iter_files, render_tree


LOG = logging.getLogger(__name__)

NO_CUSTOM_INSTRUCTIONS = "No custom instructions provided."
NO_FILE_CONTENTS = "No files included with full content or signatures."


class ContextAssembler:
    """
    Builds the Markdown context document for a root directory.

    The document is rebuilt from scratch on every call: the current policy
    map plus a fresh walk of the filesystem. Nothing is cached.
    """

    def __init__(
        self,
        store: StateStore,
        settings: Optional[ContextSettings] = None,
        fs: Optional[FileSystem] = None,
    ) -> None:
        self.store = store
        self.settings = settings or ContextSettings()
        self.fs = fs or LocalFileSystem()

    def _load_ignore_spec(self, root: Path) -> Optional[pathspec.PathSpec]:
        """
        Combine configured ignore patterns with the root's .gitignore (when
        enabled). Returns None if there is nothing to match.
        """
        patterns = list(self.settings.ignore_patterns)
        if self.settings.respect_gitignore:
            gitignore_path = root / ".gitignore"
            if gitignore_path.exists():
                try:
                    with gitignore_path.open("r", encoding="utf-8", errors="ignore") as f:
                        patterns.extend(f.read().splitlines())
                except OSError as exc:
                    LOG.warning("Could not read %s: %s", gitignore_path, exc)
        # Filter out empty lines and comments
        patterns = [p.strip() for p in patterns if p.strip() and not p.strip().startswith("#")]
        if not patterns:
            return None
        return pathspec.PathSpec.from_lines("gitwildmatch", patterns)

    def collect(self, root: PathLike) -> List[str]:
        """Every non-excluded, non-ignored file under root, as canonical paths."""
        root_key = normalize_path(root)
        ignore_spec = self._load_ignore_spec(Path(root_key))

        def prune(path: str, is_dir: bool) -> bool:
            if self.store.is_excluded(path) or self.store.skips_state_dir(path, is_dir):
                return True
            if ignore_spec is not None and path != root_key:
                relative_path = relative_posix(path, root_key)
                if is_dir:
                    relative_path += "/"
                return ignore_spec.match_file(relative_path)
            return False

        return collect_files(self.fs, [root_key], prune=prune)

    async def assemble(self, root: PathLike, custom_prompt: str = "") -> ContextDocument:
        root_key = normalize_path(root)
        files = await asyncio.to_thread(self.collect, root_key)

        relative_to_absolute = {relative_posix(path, root_key): path for path in files}
        tree = build_tree(relative_to_absolute)

        def policy_of(relative_path: str) -> InclusionPolicy:
            return self.store.effective_policy(os.path.join(root_key, *relative_path.split("/")))

        root_name = os.path.basename(root_key) or "Project"
        tree_text = render_tree(tree, root_name, policy_of)

        ordered_files: List[str] = []
        content_files: List[str] = []
        sections: List[str] = []
        for relative_path in iter_files(tree):
            path = relative_to_absolute[relative_path]
            ordered_files.append(path)
            policy = self.store.effective_policy(path)
            if not policy.contributes_content:
                continue
            content_files.append(path)
            sections.append(await self._render_section(path, relative_path, policy))

        markdown = "\n\n".join(
            [
                "## Custom Instructions",
                custom_prompt or NO_CUSTOM_INSTRUCTIONS,
                "---",
                "## Project Tree",
                f"```text\n{tree_text}\n```",
                "---",
                "## File Contents",
                "\n\n".join(sections) or NO_FILE_CONTENTS,
            ]
        )
        LOG.info(
            "Assembled context for %s: %d files in tree, %d with content",
            root_key,
            len(ordered_files),
            len(content_files),
        )
        return ContextDocument(
            markdown=markdown,
            files=ordered_files,
            content_files=content_files,
            custom_prompt=custom_prompt,
        )

    async def _render_section(self, path: str, relative_path: str, policy: InclusionPolicy) -> str:
        heading = f"### `{relative_path}`"
        extension = os.path.splitext(path)[1]
        try:
            raw = await asyncio.to_thread(self.fs.read_bytes, path)
        except OSError as exc:
            LOG.warning("Could not read %s: %s", path, exc)
            return f"{heading}\n\n```\nError reading file: {exc}\n```"

        content = raw.decode("utf-8", errors="replace")
        if policy is InclusionPolicy.SIGNATURES:
            content = extract_signatures(content, extension)
        language = extension[1:] or "text"
        return f"{heading}\n\n```{language}\n{content}\n```"
