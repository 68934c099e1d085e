"""Extraction of ```tool fenced blocks from assistant text."""

import json
import logging
import re
from typing import List

from ..models import ToolCallRequest

logger = logging.getLogger(__name__)

TOOL_BLOCK_RE = re.compile(r"```tool[ \t]*\r?\n(.*?)```", re.DOTALL)


def parse_tool_calls(text: str) -> List[ToolCallRequest]:
    """Return tool requests in order of appearance; malformed blocks are skipped."""
    calls: List[ToolCallRequest] = []
    for match in TOOL_BLOCK_RE.finditer(text or ""):
        try:
            parsed = json.loads(match.group(1).strip())
        except json.JSONDecodeError as e:
            logger.debug("Skipping malformed tool block: %s", e)
            continue
        if not isinstance(parsed, dict):
            continue
        tool = parsed.get("tool")
        if not isinstance(tool, str) or not tool:
            continue
        arguments = parsed.get("arguments")
        calls.append(ToolCallRequest(tool=tool, arguments=arguments if isinstance(arguments, dict) else {}))
    return calls


def strip_tool_blocks(text: str) -> str:
    return TOOL_BLOCK_RE.sub("", text or "").strip()
