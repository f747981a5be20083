"""
Transcript adapter for hookgate.

The transcript is the host's append-only JSONL log of the session. hookgate
only ever reads it, never truncates or rewrites it. Lines that are not valid
JSON are still searched with a plain pattern so partially-written final
lines do not hide evidence.
"""

import json
import logging
import re
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from hookgate.errors import TranscriptUnavailableError

logger = logging.getLogger(__name__)

_NAME_PATTERN = re.compile(r'"(?:name|tool_name)"\s*:\s*"([^"]+)"')


class TranscriptReader:
    """Reads a session transcript from disk."""

    def read_lines(self, path: str | None) -> tuple[str, ...]:
        """
        Read every non-blank line of the transcript.

        Raises:
            TranscriptUnavailableError: If no path was given or the file
                cannot be read. An existing empty file is NOT unavailable.
        """
        if not path:
            raise TranscriptUnavailableError()

        transcript = Path(path).expanduser()
        try:
            with transcript.open(encoding="utf-8", errors="replace") as f:
                lines = tuple(line.rstrip("\n") for line in f if line.strip())
        except OSError as e:
            logger.warning("Transcript %s unreadable: %s", transcript, e)
            raise TranscriptUnavailableError(path=str(transcript)) from e

        logger.debug("Read %d transcript lines from %s", len(lines), transcript)
        return lines


def iter_tool_uses(lines: Iterable[str]) -> Iterator[tuple[str, dict[str, Any]]]:
    """
    Yield (tool name, tool input) for every tool call recorded in the transcript.

    Recognizes both the flat shapes ({"name": ..., "type": "tool_use"} and
    {"tool_name": ..., "tool_input": ...}) and tool_use blocks nested inside
    assistant messages. Unparseable lines fall back to a name-only match.
    """
    for line in lines:
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            for match in _NAME_PATTERN.finditer(line):
                yield match.group(1), {}
            continue
        yield from _walk(entry)


def tool_names(lines: Iterable[str]) -> set[str]:
    """Names of every tool used in the transcript."""
    return {name for name, _ in iter_tool_uses(lines)}


def _walk(node: Any) -> Iterator[tuple[str, dict[str, Any]]]:
    if isinstance(node, list):
        for item in node:
            yield from _walk(item)
        return
    if not isinstance(node, dict):
        return

    if node.get("type") == "tool_use" and isinstance(node.get("name"), str):
        tool_input = node.get("input")
        yield node["name"], tool_input if isinstance(tool_input, dict) else {}
    elif isinstance(node.get("tool_name"), str):
        tool_input = node.get("tool_input")
        yield node["tool_name"], tool_input if isinstance(tool_input, dict) else {}

    for key in ("message", "content"):
        child = node.get(key)
        if isinstance(child, (dict, list)):
            yield from _walk(child)
