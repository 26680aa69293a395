from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Protocol, Tuple, Union


LOG = logging.getLogger(__name__)

PathLike = Union[str, Path]


class FileSystem(Protocol):
    """Raw filesystem primitives the workspace needs."""

    def list_dir(self, path: str) -> List[Tuple[str, bool]]:  # pragma: no cover
        ...

    def read_bytes(self, path: str) -> bytes:  # pragma: no cover
        ...

    def write_bytes(self, path: str, data: bytes) -> None:  # pragma: no cover
        ...

    def exists(self, path: str) -> bool:  # pragma: no cover
        ...

    def is_dir(self, path: str) -> bool:  # pragma: no cover
        ...

    def make_dirs(self, path: str) -> None:  # pragma: no cover
        ...


class LocalFileSystem:
    def list_dir(self, path: str) -> List[Tuple[str, bool]]:
        entries = []
        with os.scandir(path) as it:
            for entry in it:
                if entry.is_symlink() and entry.is_dir():
                    # Directory links can form cycles; they are not walked.
                    LOG.debug("Skipping directory symlink: %s", entry.path)
                    continue
                entries.append((entry.name, entry.is_dir()))
        return entries

    def read_bytes(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def write_bytes(self, path: str, data: bytes) -> None:
        # Write atomically (temp file + rename)
        target = Path(path)
        temp_path = target.with_suffix(target.suffix + ".tmp")
        try:
            temp_path.write_bytes(data)
            temp_path.replace(target)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def make_dirs(self, path: str) -> None:
        os.makedirs(path, exist_ok=True)


def normalize_path(path: PathLike) -> str:
    """Canonical string key for a path: absolute, with `.`/`..` collapsed."""
    return os.path.normpath(os.path.abspath(os.fspath(path)))


def parent_path(path: str) -> str:
    """Parent of a normalized path. The filesystem root is its own parent."""
    return os.path.dirname(path)


def relative_posix(path: str, root: str) -> str:
    return os.path.relpath(path, root).replace(os.sep, "/")


Prune = Callable[[str, bool], bool]


def collect_files(
    fs: FileSystem,
    roots: Iterable[PathLike],
    prune: Optional[Prune] = None,
    include_directories: bool = False,
) -> List[str]:
    """
    Expand roots into the recursive set of file paths beneath them.

    Directories are processed from an explicit worklist. An entry that cannot
    be stat'ed or listed (missing, vanished mid-walk, permission denied) is
    logged and skipped. `prune(path, is_dir)` returning True drops an entry
    before it is descended into. With `include_directories`, every visited
    directory is reported too, ahead of its contents.
    """
    results: List[str] = []
    for root in roots:
        root_path = normalize_path(root)
        try:
            if not fs.exists(root_path):
                LOG.warning("Skipping missing path: %s", root_path)
                continue
            root_is_dir = fs.is_dir(root_path)
        except OSError as exc:
            LOG.warning("Could not process path %s: %s", root_path, exc)
            continue

        if prune is not None and prune(root_path, root_is_dir):
            continue
        if not root_is_dir:
            results.append(root_path)
            continue

        pending = [root_path]
        while pending:
            directory = pending.pop()
            if include_directories:
                results.append(directory)
            try:
                entries = fs.list_dir(directory)
            except OSError as exc:
                LOG.warning("Could not list directory %s: %s", directory, exc)
                continue

            subdirectories = []
            for name, is_dir in sorted(entries):
                child = os.path.join(directory, name)
                if prune is not None and prune(child, is_dir):
                    continue
                if is_dir:
                    subdirectories.append(child)
                else:
                    results.append(child)
            # Reversed so directories pop in alphabetical order.
            pending.extend(reversed(subdirectories))
    return results
