"""
Response Parser

Turns free-form assistant text into structured file operations.

File blocks use a fenced code region whose opening line carries an optional
language tag and a leading-slash path::

    ```cds /db/schema.cds
    namespace my.bookshop;
    ```

Fenced regions without a path token are illustrations and stay in the text.
"""

import json
import logging
import re
from typing import Any, List, NamedTuple, Optional

from pydantic import ValidationError

from . import path_resolver
from .interactive_plan import InteractivePlan
from .models import FileSpec

logger = logging.getLogger(__name__)

# Opening fence, info string up to end of line, body up to the next fence
FENCED_BLOCK = re.compile(r"```([^\n`]*)\n(.*?)```", re.DOTALL)
EXCESS_BLANK_LINES = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")

PLAN_CODE_BLOCK = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)
PLAN_BARE_OBJECT = re.compile(r"\{.*\"type\"\s*:\s*\"interactive-plan\".*\}", re.DOTALL)


class ParsedResponse(NamedTuple):
    specs: List[FileSpec]
    summary: str


def parse_fence_info(info: str) -> tuple:
    """
    Split a fence info string into ``(language, path)``.

    The path is everything from the first token starting with ``/``; the
    language is a leading token that does not.
    """
    info = info.strip()
    if not info:
        return None, None
    language = None
    path = None
    tokens = info.split()
    if not tokens[0].startswith("/"):
        language = tokens[0]
        info = info[len(tokens[0]):].strip()
    if info.startswith("/"):
        path = info
    return language, path


def files_generated_footer(count: int) -> str:
    noun = "file" if count == 1 else "files"
    return f"✅ **Generated {count} {noun}** for your application."


def extract_file_specs(text: str) -> ParsedResponse:
    """
    Extract file specs and a cleaned summary from ``text``.

    Args:
        text: Raw assistant response

    Returns:
        ParsedResponse with specs in order of appearance and the summary text
        (file blocks removed, blank runs collapsed, footer appended when any
        file was found).
    """
    text = text or ""
    specs: List[FileSpec] = []
    kept_parts: List[str] = []
    cursor = 0

    for match in FENCED_BLOCK.finditer(text):
        language, raw_path = parse_fence_info(match.group(1))
        body = match.group(2).strip()
        if not raw_path or not body:
            continue
        specs.append(FileSpec(path=path_resolver.normalize(raw_path), content=body, language=language))
        kept_parts.append(text[cursor:match.start()])
        cursor = match.end()

    kept_parts.append(text[cursor:])
    summary = EXCESS_BLANK_LINES.sub("\n\n", "".join(kept_parts)).strip()

    if specs:
        footer = files_generated_footer(len(specs))
        summary = f"{summary}\n\n{footer}" if summary else footer
        logger.debug("Extracted %d file specs", len(specs))

    return ParsedResponse(specs, summary)


def extract_interactive_plan(payload: Any) -> Optional[InteractivePlan]:
    """
    Recover an interactive plan from an assistant payload.

    Accepts an InteractivePlan, a dict, or text containing the plan JSON in a
    fenced block or as a bare object. Returns None when no plan is found.
    """
    if isinstance(payload, InteractivePlan):
        return payload

    if isinstance(payload, dict):
        data = payload
    elif isinstance(payload, str):
        json_str = payload.strip()
        block = PLAN_CODE_BLOCK.search(json_str)
        if block:
            json_str = block.group(1).strip()
        else:
            bare = PLAN_BARE_OBJECT.search(json_str)
            if bare:
                json_str = bare.group(0)
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError:
            return None
    else:
        return None

    if not isinstance(data, dict) or data.get("type") != "interactive-plan":
        return None

    try:
        return InteractivePlan.model_validate(data)
    except ValidationError as e:
        logger.info("Interactive plan payload failed validation: %s", e)
        return None
