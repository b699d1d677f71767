"""
Tree Engine

Owns the canonical project tree: an ordered forest of files and folders under
an implicit ``/`` root, addressed by absolute path.

The nested structure is the source of truth for ordering. A parallel
path -> node index gives O(1) lookups and is kept consistent by every
mutation. All operations are total: a path with no node behind it is a no-op.
"""

import logging
from typing import Dict, Iterator, List, Optional

from . import path_resolver
from .models import FileSystemNode, NodeKind

logger = logging.getLogger(__name__)


class ProjectTree:
    """
    In-memory hierarchical store of project files.

    Mutating methods return the tree itself so calls can be chained::

        tree.ensure_folder_chain("/db").ensure_folder_chain("/db")
    """

    def __init__(self, nodes: Optional[List[FileSystemNode]] = None):
        self._roots: List[FileSystemNode] = []
        self._index: Dict[str, FileSystemNode] = {}
        if nodes:
            self.replace_all(nodes)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def roots(self) -> List[FileSystemNode]:
        """Root-level nodes in display order (a copy of the list, not of the nodes)."""
        return list(self._roots)

    def find_by_path(self, path: str) -> Optional[FileSystemNode]:
        """Return the node at ``path`` or None."""
        return self._index.get(path_resolver.normalize(path))

    def children_of(self, folder_path: str) -> Optional[List[FileSystemNode]]:
        """Children of the folder at ``folder_path`` (root allowed), or None when it is not a folder."""
        siblings = self._siblings(path_resolver.normalize(folder_path))
        return list(siblings) if siblings is not None else None

    def walk(self) -> Iterator[FileSystemNode]:
        """Yield every node depth-first, in display order."""
        stack = list(reversed(self._roots))
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))

    def paths(self) -> List[str]:
        return [node.path for node in self.walk()]

    def files(self) -> Dict[str, str]:
        """Map of file path -> content for every file in the tree."""
        return {node.path: node.content or "" for node in self.walk() if node.is_file}

    def snapshot(self) -> List[dict]:
        """A plain-data copy of the tree for rendering and comparison."""
        return [node.to_dict() for node in self._roots]

    def __contains__(self, path: str) -> bool:
        return path_resolver.normalize(path) in self._index

    def __len__(self) -> int:
        return len(self._index)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ProjectTree):
            return NotImplemented
        return self.snapshot() == other.snapshot()

    __hash__ = None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def replace_all(self, nodes: List[FileSystemNode]) -> "ProjectTree":
        """Replace the whole tree and rebuild the index."""
        self._roots = list(nodes)
        self._index = {}
        for node in self._roots:
            self._index_subtree(node)
        return self

    def set_content_at(self, path: str, content: str) -> "ProjectTree":
        node = self.find_by_path(path)
        if node is None or not node.is_file:
            logger.debug("set_content_at: no file at %s", path)
            return self
        node.content = content
        return self

    def delete_at(self, path: str) -> "ProjectTree":
        path = path_resolver.normalize(path)
        node = self._index.get(path)
        if node is None:
            logger.debug("delete_at: nothing at %s", path)
            return self
        siblings = self._siblings(path_resolver.parent_of(path))
        if siblings is not None:
            siblings[:] = [sibling for sibling in siblings if sibling is not node]
        self._unindex_subtree(node)
        return self

    def toggle_folder(self, path: str) -> "ProjectTree":
        node = self.find_by_path(path)
        if node is None or not node.is_folder:
            logger.debug("toggle_folder: no folder at %s", path)
            return self
        node.is_expanded = not node.is_expanded
        return self

    def upsert_at(self, node: FileSystemNode, parent_folder_path: str) -> "ProjectTree":
        """
        Insert ``node`` under ``parent_folder_path``.

        A sibling with the same path is replaced in place (the new node takes
        the old node's index); otherwise the node is appended. No-op when the
        parent is not an existing folder, when ``node.path`` does not sit
        directly beneath it, or when ``node.name`` is not the path's last segment.
        """
        parent_folder_path = path_resolver.normalize(parent_folder_path)
        node.path = path_resolver.normalize(node.path)

        if path_resolver.parent_of(node.path) != parent_folder_path:
            logger.debug("upsert_at: %s does not belong under %s", node.path, parent_folder_path)
            return self

        if node.name != path_resolver.name_of(node.path):
            logger.debug("upsert_at: name %r does not match %s", node.name, node.path)
            return self

        siblings = self._siblings(parent_folder_path)
        if siblings is None:
            logger.debug("upsert_at: no folder at %s", parent_folder_path)
            return self

        for position, sibling in enumerate(siblings):
            if sibling.path == node.path:
                self._unindex_subtree(sibling)
                siblings[position] = node
                break
        else:
            siblings.append(node)

        self._index_subtree(node)
        return self

    def ensure_folder_chain(self, path: str) -> "ProjectTree":
        """
        Make sure every segment of ``path`` exists as a folder.

        Missing segments are created as expanded, empty folders appended to
        their parent. Existing folders are left untouched, so calling this
        twice is the same as calling it once. A file standing where a folder
        is needed is replaced by a folder.
        """
        for folder_path in path_resolver.chain(path):
            existing = self._index.get(folder_path)
            if existing is not None and existing.is_folder:
                continue
            if existing is not None:
                logger.warning("Replacing file %s with a folder", folder_path)
            folder = FileSystemNode.folder(folder_path, path_resolver.name_of(folder_path))
            self.upsert_at(folder, path_resolver.parent_of(folder_path))
        return self

    def materialize_file(self, path: str, content: str) -> FileSystemNode:
        """Create or replace the file at ``path``, creating missing folders first."""
        folder_path, file_name = path_resolver.split_file_path(path)
        self.ensure_folder_chain(folder_path)
        node = FileSystemNode.file(path_resolver.join(folder_path, file_name), file_name, content)
        self.upsert_at(node, folder_path)
        return node

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _siblings(self, folder_path: str) -> Optional[List[FileSystemNode]]:
        if folder_path == path_resolver.ROOT:
            return self._roots
        folder = self._index.get(folder_path)
        if folder is None or folder.kind is not NodeKind.FOLDER:
            return None
        if folder.children is None:
            folder.children = []
        return folder.children

    def _index_subtree(self, node: FileSystemNode) -> None:
        self._index[node.path] = node
        for child in node.children or []:
            self._index_subtree(child)

    def _unindex_subtree(self, node: FileSystemNode) -> None:
        if self._index.get(node.path) is node:
            del self._index[node.path]
        for child in node.children or []:
            self._unindex_subtree(child)
