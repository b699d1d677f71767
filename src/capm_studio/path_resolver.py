"""
Path Resolver

Stateless helpers for decomposing and composing absolute workspace paths and
for locating nodes in a tree snapshot by depth-first descent.
"""

from typing import Iterable, List, Optional, Tuple

from .models import FileSystemNode, NodeKind

ROOT = "/"
SEPARATOR = "/"


def normalize(path: str) -> str:
    """
    Normalize a workspace path.

    Prefixes a leading separator when missing, collapses repeated separators,
    drops ``.`` segments, resolves ``..`` segments and strips any trailing
    separator. The root is returned as ``/``.
    """
    segments: List[str] = []
    for segment in (path or "").strip().split(SEPARATOR):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    return SEPARATOR + SEPARATOR.join(segments)


def split(path: str) -> List[str]:
    """Return the segments of a path, root yields an empty list."""
    return [segment for segment in normalize(path).split(SEPARATOR) if segment]


def join(parent: str, name: str) -> str:
    parent = normalize(parent)
    if parent == ROOT:
        return normalize(ROOT + name)
    return normalize(f"{parent}{SEPARATOR}{name}")


def parent_of(path: str) -> str:
    segments = split(path)
    if len(segments) <= 1:
        return ROOT
    return SEPARATOR + SEPARATOR.join(segments[:-1])


def name_of(path: str) -> str:
    segments = split(path)
    return segments[-1] if segments else ""


def split_file_path(path: str) -> Tuple[str, str]:
    """Split a file path into ``(folder_path, file_name)``."""
    return parent_of(path), name_of(path) or "untitled"


def ancestors(path: str) -> List[str]:
    """
    Return every ancestor folder path of ``path`` from the outermost inward,
    excluding the root and ``path`` itself.

    >>> ancestors("/app/webapp/view/Main.view.xml")
    ['/app', '/app/webapp', '/app/webapp/view']
    """
    segments = split(path)
    result = []
    for depth in range(1, len(segments)):
        result.append(SEPARATOR + SEPARATOR.join(segments[:depth]))
    return result


def chain(path: str) -> List[str]:
    """``ancestors(path)`` plus ``path`` itself."""
    normalized = normalize(path)
    if normalized == ROOT:
        return []
    return ancestors(normalized) + [normalized]


def is_root(path: str) -> bool:
    return normalize(path) == ROOT


def is_within(path: str, folder: str) -> bool:
    """True when ``path`` equals ``folder`` or lies beneath it."""
    path, folder = normalize(path), normalize(folder)
    if folder == ROOT:
        return True
    return path == folder or path.startswith(folder + SEPARATOR)


def find_node(nodes: Iterable[FileSystemNode], path: str,
              kind: Optional[NodeKind] = None) -> Optional[FileSystemNode]:
    """Depth-first recursive search for the node at ``path``."""
    for node in nodes:
        if node.path == path and (kind is None or node.kind is kind):
            return node
        if node.children:
            found = find_node(node.children, path, kind)
            if found is not None:
                return found
    return None


def find_folder(nodes: Iterable[FileSystemNode], path: str) -> Optional[FileSystemNode]:
    return find_node(nodes, path, NodeKind.FOLDER)


def find_file(nodes: Iterable[FileSystemNode], path: str) -> Optional[FileSystemNode]:
    return find_node(nodes, path, NodeKind.FILE)


def resolve_cli_path(argument: str) -> str:
    """Map a terminal argument (``.``, ``db``, ``./srv/``) to an absolute path."""
    if argument in ("", ".", "./", "~", "/home/project"):
        return ROOT
    return normalize(argument)
