from __future__ import annotations

from typing import Callable, Dict, Iterable, Iterator, List, Tuple

from ...domain.models import InclusionPolicy

DIRECTORY_ICON = "📁"
FILE_ICON = "📄"

FileTree = Dict[str, "FileTree"]
PolicyLookup = Callable[[str], InclusionPolicy]


def build_tree(relative_paths: Iterable[str]) -> FileTree:
    """Prefix tree keyed by `/`-separated path segments. Leaves are files."""
    tree: FileTree = {}
    for relative_path in relative_paths:
        if not relative_path or relative_path == ".":
            continue
        level = tree
        for part in relative_path.split("/"):
            level = level.setdefault(part, {})
    return tree


def _ordered(level: FileTree) -> List[Tuple[str, bool]]:
    directories = sorted(name for name, child in level.items() if child)
    files = sorted(name for name, child in level.items() if not child)
    return [(name, True) for name in directories] + [(name, False) for name in files]


def iter_files(tree: FileTree, prefix: str = "") -> Iterator[str]:
    """Relative file paths in display order: directories first, then files."""
    for name, is_dir in _ordered(tree):
        path = f"{prefix}{name}"
        if is_dir:
            yield from iter_files(tree[name], f"{path}/")
        else:
            yield path


def render_tree(tree: FileTree, root_name: str, policy_of: PolicyLookup) -> str:
    """
    Render the tree with box-drawing connectors. `policy_of` receives the
    root-relative path of each entry and decides its badge.
    """
    lines = [f"{DIRECTORY_ICON} {root_name}/"]
    lines.extend(_render_level(tree, "", policy_of))
    return "\n".join(lines)


def _render_level(level: FileTree, prefix: str, policy_of: PolicyLookup) -> List[str]:
    lines: List[str] = []
    entries = _ordered(level)
    for index, (name, is_dir) in enumerate(entries):
        relative_path = f"{prefix}{name}"
        is_last = index == len(entries) - 1
        connector = "└─ " if is_last else "├─ "
        icon = DIRECTORY_ICON if is_dir else FILE_ICON
        label = f"{name}/" if is_dir else name
        badge = policy_of(relative_path).badge
        lines.append(f"{connector}{icon} {label}{' ' + badge if badge else ''}")
        if is_dir:
            continuation = "   " if is_last else "│  "
            for child_line in _render_level(level[name], f"{relative_path}/", policy_of):
                lines.append(continuation + child_line)
    return lines
