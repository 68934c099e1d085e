"""Tool category vocabulary: names, display labels and the enablement rule."""

from typing import Dict, Mapping

TOOL_NAME_PREFIX = "agent_tools_"
UNKNOWN_CATEGORY = "unknown"

CATEGORY_LABELS: Dict[str, str] = {
    "json": "JSON Studio",
    "csv": "CSV Viewer",
    "pdf": "PDF Toolkit",
    "xml": "XML Studio",
    "excel": "Excel Viewer",
    "image": "Image Toolkit",
    "markdown": "Markdown Studio",
    "archive": "Archive Manager",
    "regex": "Regex Tester",
    "diff": "Diff & Patch",
    "sql": "SQL Studio",
    "crypto": "Crypto & Encoding",
    "datetime": "Date/Time Tools",
    "text": "Text Utilities",
    "math": "Math Utilities",
    "color": "Color Utilities",
    "physics": "Physics Calculator",
    "structural": "Structural Engineering",
}


def category_for_tool(tool_name: str) -> str:
    """Derive a tool's category from its name: strip the namespace, take the leading token."""
    stripped = tool_name[len(TOOL_NAME_PREFIX):] if tool_name.startswith(TOOL_NAME_PREFIX) else tool_name
    head = stripped.split("_", 1)[0].strip().lower()
    return head or UNKNOWN_CATEGORY


def category_label(category: str) -> str:
    return CATEGORY_LABELS.get(category, category)


def is_category_enabled(category: str, enabled: Mapping[str, bool]) -> bool:
    """Categories are enabled unless explicitly switched off."""
    return enabled.get(category) is not False
