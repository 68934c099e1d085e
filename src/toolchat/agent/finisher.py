"""Sanitizing the final reply and lifting binary tool output into downloadable files."""

import re
from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

from ..models import FileOutput, FinishedReply, ToolCallResult

# tool name -> (file stem, extension, mime type)
BINARY_TOOLS: Dict[str, Tuple[str, str, str]] = {
    "agent_tools_archive_create": ("archive", "zip", "application/zip"),
    "agent_tools_pdf_merge": ("merged", "pdf", "application/pdf"),
    "agent_tools_pdf_split": ("split", "pdf", "application/pdf"),
    "agent_tools_pdf_from_template": ("document", "pdf", "application/pdf"),
    "agent_tools_pdf_fill_form": ("filled", "pdf", "application/pdf"),
    "agent_tools_image_convert": ("converted", "png", "image/png"),
    "agent_tools_image_resize": ("resized", "png", "image/png"),
    "agent_tools_excel_convert": ("workbook", "xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
}

MIN_BINARY_LENGTH = 500

_MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*\]\(\s*(?:data:[^)]*|[A-Za-z0-9+/=\s]{100,})\s*\)")
_BASE64_LINE_RE = re.compile(r"^[ \t]*[A-Za-z0-9+/=]{100,}[ \t]*$", re.MULTILINE)
_DATA_URI_RE = re.compile(r"data:[\w.+-]+/[\w.+-]+(?:;[\w.+-]+=[^;,\s]*)*;base64,[A-Za-z0-9+/=]*")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_BASE64_BODY_RE = re.compile(r"[A-Za-z0-9+/\r\n]+={0,2}")


def sanitize_text(text: str) -> str:
    text = _MARKDOWN_IMAGE_RE.sub("", text or "")
    text = _BASE64_LINE_RE.sub("", text)
    text = _DATA_URI_RE.sub("", text)
    text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
    return text.strip()


def looks_like_base64(text: str) -> bool:
    trimmed = (text or "").strip()
    return len(trimmed) > MIN_BINARY_LENGTH and _BASE64_BODY_RE.fullmatch(trimmed) is not None


def _decoded_size(payload: str) -> int:
    body = re.sub(r"\s", "", payload)
    return len(body) * 3 // 4 - body.count("=")


def extract_file_outputs(results: Sequence[ToolCallResult]) -> Tuple[List[ToolCallResult], List[FileOutput]]:
    """Move base64 payloads of binary-producing tools out of the results."""
    cleaned: List[ToolCallResult] = []
    files: List[FileOutput] = []
    for result in results:
        target = BINARY_TOOLS.get(result.tool)
        if target is None or not result.success or not looks_like_base64(result.result):
            cleaned.append(result)
            continue
        stem, ext, mime_type = target
        payload = re.sub(r"\s", "", result.result)
        name = f"{stem}-{len(files) + 1}.{ext}"
        files.append(FileOutput(name=name, mime_type=mime_type, data=payload))
        cleaned.append(
            replace(result, result=f"File generated: {name} ({mime_type}, {_decoded_size(payload)} bytes)")
        )
    return cleaned, files


def finish(text: str, tool_results: Sequence[ToolCallResult]) -> FinishedReply:
    results, files = extract_file_outputs(tool_results)
    return FinishedReply(text=sanitize_text(text), tool_results=results, file_outputs=files)
