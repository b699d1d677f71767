"""
Generation Orchestrator

Sequences parsed file specs into the project tree with observable, phased
progress, then runs the follow-up commands through the command simulator.

Runs are cooperative: every pause is an await point, so a new user action can
be handled between steps. Starting a new run supersedes the in-flight one; the
stale run notices at its next step because the orchestrator no longer holds
its progress object, and stops without applying further files. Files it
already applied stay in the tree.
"""

import asyncio
import logging
import random
from collections import Counter
from typing import Callable, List, Optional, Sequence

from . import path_resolver
from .command_simulator import CommandSimulator
from .models import FileSpec, FileStatus, GenerationProgress, PendingFile, Phase
from .session_logger import SessionLogger
from .tree_engine import ProjectTree

logger = logging.getLogger(__name__)


class GenerationOrchestrator:
    """
    Drives generation runs for one workspace.

    Args:
        tree: The workspace's project tree
        simulator: Command simulator used for the follow-up commands
        file_delay: ``(min, max)`` seconds for the randomized per-file pause
        session_logger: Structured run logger
        notify: Optional callback receiving progress events
        rng: Random source for the per-file pauses
    """

    def __init__(self, tree: ProjectTree, simulator: CommandSimulator,
                 file_delay: tuple = (0.8, 2.0),
                 session_logger: Optional[SessionLogger] = None,
                 notify: Optional[Callable[[dict], None]] = None,
                 rng: Optional[random.Random] = None):
        self.tree = tree
        self.simulator = simulator
        self.file_delay = file_delay
        self.session_logger = session_logger or SessionLogger()
        self.notify = notify
        self.rng = rng or random.Random()
        self.current: Optional[GenerationProgress] = None

    def discard(self) -> None:
        """Drop the current progress (dismissed by the user or about to be superseded)."""
        if self.current is not None:
            self.current = None
            self._emit({"type": "progress", "progress": None})

    def is_current(self, progress: GenerationProgress) -> bool:
        return self.current is progress

    async def run_generation(self, file_specs: Sequence[FileSpec],
                             followup_commands: Sequence[str]) -> GenerationProgress:
        """
        Materialize ``file_specs`` in order, then run ``followup_commands``.

        Returns:
            The run's progress object. If the run was superseded its phase is
            whatever it had reached when it stopped.
        """
        pending = [PendingFile(path=path_resolver.normalize(spec.path), content=spec.content)
                   for spec in file_specs]
        progress = GenerationProgress(
            phase=Phase.GENERATING,
            pending_files=pending,
            commands=list(followup_commands),
            message=f"Creating {len(pending)} files...",
        )
        self.current = progress
        self.session_logger.log_run_started(len(pending), progress.commands)
        self._warn_duplicates(pending)
        self._emit_progress(progress)

        for index, pending_file in enumerate(pending):
            if not self.is_current(progress):
                return self._superseded(progress)

            pending_file.status = FileStatus.CREATING
            self._emit_file_status(progress, index)

            await asyncio.sleep(self._file_pause())
            if not self.is_current(progress):
                return self._superseded(progress)

            if pending_file.content.strip():
                self.tree.materialize_file(pending_file.path, pending_file.content)
                self.session_logger.log_file_materialized(pending_file.path, len(pending_file.content))
                self._emit({"type": "tree", "tree": self.tree.snapshot()})
            else:
                self.session_logger.log_file_skipped(pending_file.path)

            pending_file.status = FileStatus.COMPLETE
            self._emit_file_status(progress, index)

        if not self.is_current(progress):
            return self._superseded(progress)

        progress.phase = Phase.INSTALLING
        progress.message = "Installing dependencies and starting server..."
        self.session_logger.log_phase(progress.phase.value)
        self._emit_progress(progress)

        for command in progress.commands:
            if not self.is_current(progress):
                return self._superseded(progress)
            await self.simulator.run(command)

        if not self.is_current(progress):
            return self._superseded(progress)

        progress.phase = Phase.COMPLETE
        progress.message = "Project ready! 🎉"
        self.session_logger.log_phase(progress.phase.value)
        self._emit_progress(progress)
        return progress

    def _file_pause(self) -> float:
        low, high = self.file_delay
        if high <= 0:
            return 0
        return self.rng.uniform(low, high)

    def _warn_duplicates(self, pending: List[PendingFile]) -> None:
        counts = Counter(pending_file.path for pending_file in pending)
        duplicates = [path for path, count in counts.items() if count > 1]
        if duplicates:
            self.session_logger.log_duplicate_paths(duplicates)

    def _superseded(self, progress: GenerationProgress) -> GenerationProgress:
        applied = sum(1 for f in progress.pending_files if f.status is FileStatus.COMPLETE)
        self.session_logger.log_run_superseded(applied, len(progress.pending_files))
        return progress

    def _emit_file_status(self, progress: GenerationProgress, index: int) -> None:
        pending_file = progress.pending_files[index]
        self._emit({
            "type": "file_status",
            "index": index,
            "path": pending_file.path,
            "status": pending_file.status.value,
        })
        self._emit_progress(progress)

    def _emit_progress(self, progress: GenerationProgress) -> None:
        self._emit({"type": "progress", "progress": progress.to_dict()})

    def _emit(self, event: dict) -> None:
        if self.notify is not None:
            self.notify(event)
