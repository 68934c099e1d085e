import logging
from typing import Dict, Iterable, Iterator, List, Mapping

from ..categories import (  # noqa: F401
    CATEGORY_LABELS,
    TOOL_NAME_PREFIX,
    UNKNOWN_CATEGORY,
    category_for_tool,
    category_label,
    is_category_enabled,
)
from ..models import ToolDescriptor

logger = logging.getLogger(__name__)


class CapabilityCatalog:
    """Read-mostly registry of tool descriptors, keyed by name in registration order."""

    def __init__(self, tools: Iterable[ToolDescriptor] = ()) -> None:
        self._tools: Dict[str, ToolDescriptor] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolDescriptor) -> None:
        if tool.name in self._tools:
            logger.warning("Tool %s registered twice; keeping the first", tool.name)
            return
        self._tools[tool.name] = tool

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    def find_by_name(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def category_of(self, name: str) -> str:
        return category_for_tool(name)

    def list_enabled(self, enabled: Mapping[str, bool]) -> List[ToolDescriptor]:
        return [t for t in self._tools.values() if is_category_enabled(t.category, enabled)]

    def grouped(self, tools: Iterable[ToolDescriptor] | None = None) -> Dict[str, List[ToolDescriptor]]:
        """Group tools by category, categories in order of first appearance."""
        groups: Dict[str, List[ToolDescriptor]] = {}
        for tool in self._tools.values() if tools is None else tools:
            groups.setdefault(tool.category, []).append(tool)
        return groups
