"""
Session Logging

Logging setup for the CLI and web entry points, and a structured logger for
generation runs (``MESSAGE | key: value | key: value``).
"""

import logging
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure root logging for an entry point."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode='a', encoding='utf-8'))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), handlers=handlers, force=True)


class SessionLogger:
    """Records the lifecycle of generation runs for one workspace session."""

    def __init__(self, project_name: Optional[str] = None):
        self.project_name = project_name or "untitled"
        self.logger = logging.getLogger('capm_studio.session')

    def log_info(self, message: str, data: dict = None):
        """Log an info message with optional structured data."""
        self.logger.info(self._format(message, data))

    def log_warning(self, message: str, data: dict = None):
        self.logger.warning(self._format(message, data))

    def log_error(self, message: str, data: dict = None):
        self.logger.error(self._format(message, data))

    def _format(self, message: str, data: Optional[dict]) -> str:
        if data:
            formatted_data = " | ".join([f"{k}: {v}" for k, v in data.items()])
            return f"{message} | {formatted_data}"
        return message

    def log_run_started(self, file_count: int, commands: List[str]):
        self.log_info("GENERATION STARTED", {
            "project": self.project_name,
            "files": file_count,
            "commands": ", ".join(commands) or "none",
        })

    def log_file_materialized(self, path: str, size: int):
        self.log_info("FILE MATERIALIZED", {"path": path, "chars": size})

    def log_file_skipped(self, path: str):
        self.log_info("FILE SKIPPED", {"path": path, "reason": "empty content"})

    def log_duplicate_paths(self, paths: List[str]):
        self.log_warning("DUPLICATE PATHS IN PAYLOAD", {
            "paths": ", ".join(paths),
            "policy": "last write wins",
        })

    def log_phase(self, phase: str):
        self.log_info("PHASE", {"project": self.project_name, "phase": phase})

    def log_run_superseded(self, completed: int, total: int):
        self.log_info("GENERATION SUPERSEDED", {
            "project": self.project_name,
            "applied": f"{completed}/{total}",
        })

    def log_generation_failure(self, error: Exception):
        self.log_error("UPSTREAM GENERATION FAILED", {
            "project": self.project_name,
            "error": f"{type(error).__name__}: {error}",
        })

    def log_detected_errors(self, errors: List[str]):
        self.log_info("ERRORS DETECTED", {"project": self.project_name, "count": len(errors)})
        for i, error in enumerate(errors, 1):
            cleaned_error = error.replace('\n', ' | ')[:500]
            self.log_info(f"  ERROR {i}/{len(errors)}", {"detail": cleaned_error})
