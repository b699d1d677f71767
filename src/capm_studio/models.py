"""
Workspace Data Model

Plain data containers shared by the tree engine, the generation orchestrator,
the command simulator and the workspace session.
"""

import itertools
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional


# Content marker for an assistant message that renders the active plan
INTERACTIVE_PLAN_SENTINEL = "$$INTERACTIVE_PLAN$$"

_id_counter = itertools.count(1)


def new_node_id() -> str:
    """Return a fresh node identifier. Identifiers are never reused within a process."""
    return f"{next(_id_counter)}-{uuid.uuid4().hex[:9]}"


class NodeKind(Enum):
    FILE = "file"
    FOLDER = "folder"


class FileStatus(Enum):
    PENDING = "pending"
    CREATING = "creating"
    COMPLETE = "complete"


class Phase(Enum):
    PLANNING = "planning"
    GENERATING = "generating"
    INSTALLING = "installing"
    COMPLETE = "complete"


class Role(Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationMode(Enum):
    """Whether the next assistant payload may be an interactive plan."""
    AWAITING_PLAN = "awaiting_plan"
    GENERATING = "generating"


@dataclass
class FileSystemNode:
    """A file or folder in the project tree."""
    id: str
    name: str
    kind: NodeKind
    path: str
    content: Optional[str] = None
    children: Optional[List["FileSystemNode"]] = None
    is_expanded: bool = False

    @property
    def is_folder(self) -> bool:
        return self.kind is NodeKind.FOLDER

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @classmethod
    def file(cls, path: str, name: str, content: str = "") -> "FileSystemNode":
        return cls(id=new_node_id(), name=name, kind=NodeKind.FILE, path=path, content=content)

    @classmethod
    def folder(cls, path: str, name: str, is_expanded: bool = True) -> "FileSystemNode":
        return cls(id=new_node_id(), name=name, kind=NodeKind.FOLDER, path=path,
                   children=[], is_expanded=is_expanded)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.kind.value,
            "path": self.path,
        }
        if self.is_folder:
            data["isExpanded"] = self.is_expanded
            data["children"] = [child.to_dict() for child in self.children or []]
        else:
            data["content"] = self.content or ""
        return data


@dataclass(frozen=True)
class FileSpec:
    """A (path, content) pair extracted from generated text."""
    path: str
    content: str
    language: Optional[str] = None


@dataclass
class PendingFile:
    path: str
    content: str
    status: FileStatus = FileStatus.PENDING

    def to_dict(self) -> dict:
        return {"path": self.path, "status": self.status.value, "content": self.content}


@dataclass(eq=False)
class GenerationProgress:
    """
    Tracks one generation run.

    Compared by identity: a superseded run recognises that it is stale because
    the session no longer holds *its* progress object.
    """
    phase: Phase
    pending_files: List[PendingFile]
    commands: List[str]
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "message": self.message,
            "files": [f.to_dict() for f in self.pending_files],
            "commands": list(self.commands),
        }


@dataclass
class ConversationMessage:
    role: Role
    content: str
    timestamp: float = field(default_factory=time.time)

    @property
    def is_plan(self) -> bool:
        return self.content == INTERACTIVE_PLAN_SENTINEL

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.content, "timestamp": self.timestamp}


class OutputLog:
    """Append-only sequence of output lines, shared by the terminal and the error detector."""

    def __init__(self, lines: Optional[List[str]] = None):
        self._lines: List[str] = list(lines or [])

    def append(self, line: str) -> None:
        self._lines.append(line)

    def extend(self, lines: List[str]) -> None:
        self._lines.extend(lines)

    def clear(self) -> None:
        self._lines.clear()

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._lines))

    def __len__(self) -> int:
        return len(self._lines)

    def __getitem__(self, index):
        return self._lines[index]


@dataclass
class RunState:
    is_running: bool = False


@dataclass
class GenerationRequest:
    """What the workspace hands to the external generation backend."""
    prompt: str
    mode: ConversationMode
    project_name: Optional[str] = None
    project_files: Dict[str, str] = field(default_factory=dict)

    @property
    def is_first_turn(self) -> bool:
        return self.mode is ConversationMode.AWAITING_PLAN
