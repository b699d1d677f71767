"""
Studio Configuration

Settings come from the environment; a ``.env`` file in the working directory
is loaded first.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_FOLLOWUP_COMMANDS = ["npm install", "npm start"]


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring negative %s=%r, using %s", name, raw, default)
        return default
    return value


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


@dataclass
class StudioConfig:
    """Runtime configuration for a workspace session and its surfaces."""
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    file_delay_min: float = 0.8
    file_delay_max: float = 2.0
    command_delay_scale: float = 1.0
    followup_commands: List[str] = field(default_factory=lambda: list(DEFAULT_FOLLOWUP_COMMANDS))
    max_offered_errors: int = 3
    log_file: Optional[str] = None
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    def __post_init__(self):
        if self.file_delay_min > self.file_delay_max:
            self.file_delay_min, self.file_delay_max = self.file_delay_max, self.file_delay_min

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "StudioConfig":
        """Build a config from environment variables (after loading ``.env``)."""
        load_dotenv(dotenv_path)

        commands_raw = os.getenv("STUDIO_FOLLOWUP_COMMANDS")
        if commands_raw is None:
            commands = list(DEFAULT_FOLLOWUP_COMMANDS)
        else:
            commands = [command.strip() for command in commands_raw.split(",") if command.strip()]

        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY"),
            file_delay_min=_get_float("STUDIO_FILE_DELAY_MIN", 0.8),
            file_delay_max=_get_float("STUDIO_FILE_DELAY_MAX", 2.0),
            command_delay_scale=_get_float("STUDIO_COMMAND_DELAY_SCALE", 1.0),
            followup_commands=commands,
            max_offered_errors=_get_int("STUDIO_MAX_ERRORS", 3),
            log_file=os.getenv("STUDIO_LOG_FILE") or None,
            log_level=os.getenv("STUDIO_LOG_LEVEL", "INFO").upper(),
            host=os.getenv("STUDIO_HOST", "0.0.0.0"),
            port=_get_int("STUDIO_PORT", 8000),
        )

    @classmethod
    def instant(cls, **overrides) -> "StudioConfig":
        """A config with all pacing disabled (scripted use and tests)."""
        values = dict(file_delay_min=0.0, file_delay_max=0.0, command_delay_scale=0.0)
        values.update(overrides)
        return cls(**values)
