"""
Error Detector

Scans the output log for failure signatures and offers the most recent ones
as prompts the user can send back to the assistant.
"""

from typing import Iterable, List

FAILURE_GLYPH = "✘"
FAILURE_KEYWORDS = ("error", "failed", "cannot")


def is_error_line(line: str) -> bool:
    lowered = line.lower()
    return any(keyword in lowered for keyword in FAILURE_KEYWORDS) or FAILURE_GLYPH in line


def build_resolution_prompt(error_line: str) -> str:
    """Wrap a detected error into a user prompt asking for a fix."""
    return (
        "I'm getting this error in my CAPM project:\n\n"
        f"{error_line}\n\n"
        "Please help me fix this error. Provide the exact solution and any code changes needed."
    )


class ErrorDetector:
    def __init__(self, max_offered: int = 3):
        self.max_offered = max_offered

    def detect(self, output_log: Iterable[str]) -> List[str]:
        """
        Return the most recent failure lines, oldest first.

        A line qualifies when it contains "error", "failed" or "cannot"
        (case-insensitive) or the failure glyph.
        """
        errors = [line for line in output_log if is_error_line(line)]
        if self.max_offered <= 0:
            return []
        return errors[-self.max_offered:]
