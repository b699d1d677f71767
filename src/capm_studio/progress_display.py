"""
Progress Display

Animated terminal spinner for long-running waits (the generation backend) and
a plain-text rendering of a generation run's progress for the CLI.
"""

import sys
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, TextIO

from .models import FileStatus, GenerationProgress, Phase


class LoaderStyle(Enum):
    """Different styles of progress loaders."""
    SPINNER = "spinner"
    DOTS = "dots"
    THINKING = "thinking"
    BUILDING = "building"


ANIMATIONS = {
    LoaderStyle.SPINNER: ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"],
    LoaderStyle.DOTS: [".", "..", "...", ""],
    LoaderStyle.THINKING: ["🤔", "💭", "🧠", "⚡", "🤖", "🎯"],
    LoaderStyle.BUILDING: ["🔨", "🔧", "⚙️", "🛠️", "🏗️", "📦"],
}

STATUS_ICONS = {
    FileStatus.PENDING: "⏳",
    FileStatus.CREATING: "🔄",
    FileStatus.COMPLETE: "✅",
}

PHASE_TITLES = {
    Phase.PLANNING: "📋 Planning",
    Phase.GENERATING: "⚡ Generating files",
    Phase.INSTALLING: "📦 Installing",
    Phase.COMPLETE: "🎉 Complete",
}


@dataclass
class LoaderConfig:
    """Configuration for a progress loader."""
    task_name: str
    style: LoaderStyle = LoaderStyle.SPINNER
    update_interval: float = 0.15
    show_elapsed: bool = True


class ProgressLoader:
    """
    Animated progress loader that keeps the terminal active.

    The animation runs on a daemon thread and is cleared when the loader stops.
    """

    def __init__(self, config: LoaderConfig, stream: Optional[TextIO] = None):
        self.config = config
        self.stream = stream or sys.stdout
        self.is_running = False
        self.thread: Optional[threading.Thread] = None
        self.start_time: Optional[float] = None
        self.current_frame = 0
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    def start(self):
        """Start the progress loader animation."""
        with self._lock:
            if self.is_running:
                return
            self.is_running = True
            self.start_time = time.time()
            self._stop_event.clear()
            self.current_frame = 0
            self.thread = threading.Thread(target=self._animate, daemon=True)
            self.thread.start()

    def stop(self, success_message: Optional[str] = None):
        """Stop the progress loader and optionally show a success message."""
        with self._lock:
            if not self.is_running:
                return
            self.is_running = False
            self._stop_event.set()

        # Join outside the lock, the animation thread takes it too
        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=0.5)

        self.stream.write("\r" + " " * 120 + "\r")
        if success_message:
            elapsed = time.time() - (self.start_time or 0)
            self.stream.write(f"✅ {success_message} ({elapsed:.1f}s)\n")
        self.stream.flush()

    def update_task(self, new_task_name: str):
        """Update the task name while the loader is running."""
        with self._lock:
            if self.is_running:
                self.config.task_name = new_task_name

    def _animate(self):
        frames = ANIMATIONS.get(self.config.style, ANIMATIONS[LoaderStyle.SPINNER])
        while not self._stop_event.is_set():
            with self._lock:
                task_name = self.config.task_name
            elapsed = time.time() - (self.start_time or 0)
            elapsed_str = f" ({elapsed:.1f}s)" if self.config.show_elapsed else ""

            line = f"\r{frames[self.current_frame % len(frames)]} {task_name}{elapsed_str}"
            if len(line) > 115:
                line = line[:112] + "..."

            try:
                self.stream.write(line)
                self.stream.flush()
            except (OSError, ValueError):
                break

            self.current_frame = (self.current_frame + 1) % len(frames)
            if self._stop_event.wait(self.config.update_interval):
                break


@contextmanager
def show_progress(task_name: str, style: LoaderStyle = LoaderStyle.SPINNER, stream: Optional[TextIO] = None):
    """Context manager for showing progress during a task."""
    loader = ProgressLoader(LoaderConfig(task_name=task_name, style=style), stream=stream)
    loader.start()
    try:
        yield loader
    finally:
        loader.stop()


@contextmanager
def llm_progress(provider_name: str = "AI", stream: Optional[TextIO] = None):
    """Specialized progress loader for generation backend requests."""
    with show_progress(f"🤖 Waiting for {provider_name}", LoaderStyle.THINKING, stream=stream) as loader:
        yield loader


def render_generation_progress(progress: Optional[GenerationProgress]) -> str:
    """Render a generation run as text: phase, message, per-file status and commands."""
    if progress is None:
        return ""

    done = sum(1 for f in progress.pending_files if f.status is FileStatus.COMPLETE)
    total = len(progress.pending_files)
    lines: List[str] = [f"{PHASE_TITLES[progress.phase]} ({done}/{total} files)"]
    if progress.message:
        lines.append(f"   {progress.message}")

    for pending_file in progress.pending_files:
        lines.append(f"   {STATUS_ICONS[pending_file.status]} {pending_file.path}")

    if progress.commands and progress.phase in (Phase.INSTALLING, Phase.COMPLETE):
        lines.append("   Commands:")
        for command in progress.commands:
            lines.append(f"     $ {command}")

    return "\n".join(lines)
