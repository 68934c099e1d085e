from typing import Any, Dict, List, Mapping, Sequence

from ..models import FileAttachment, ToolDescriptor
from .catalog import CapabilityCatalog, category_label

PLACEHOLDER_TEMPLATE = "__file:{index}__"

PREAMBLE = """You are the Agent Tools AI assistant by atmatic.ai.

## Your Role
You help users work with the Agent Tools platform, a collection of deterministic tools for data transformation. You can execute tools on behalf of users and explain how to use them.

## Scope
- ONLY respond about: atmatic.ai, Agent Tools platform, tool usage guidance, and executing tools
- When users ask you to perform a data operation (convert, format, parse, calculate, etc.), execute the appropriate tool
- When asked general knowledge questions, coding help, or anything outside the Agent Tools scope, politely decline and redirect them to use the tools"""

EXECUTION_INSTRUCTIONS = """## How to Execute Tools
When you need to execute a tool, output a JSON block in your response like this:
```tool
{"tool": "tool_name", "arguments": {"param1": "value1"}}
```

You can call multiple tools by including multiple tool blocks. After tools execute, you'll receive results and can explain them to the user."""

GUIDELINES = """## Guidelines
- Be concise and helpful
- When a user's request maps to a tool, execute it rather than just explaining
- Show tool results clearly
- If a tool fails, explain the error and suggest corrections
- Never paste base64 data, data URIs or other binary tool output into your reply; generated files are delivered to the user separately
- If the user asks about something outside your scope, say: "I'm focused on helping you with Agent Tools. You can explore all tools at the homepage or visit atmatic.ai for more information.\""""


def _format_parameter(name: str, schema: Mapping[str, Any], required: bool) -> str:
    param_type = schema.get("type", "any")
    if isinstance(param_type, list):
        param_type = "|".join(str(t) for t in param_type)
    parts = [str(param_type), "required" if required else "optional"]
    if schema.get("enum"):
        parts.append("one of: " + ", ".join(str(v) for v in schema["enum"]))
    return f"{name} ({', '.join(parts)})"


def format_tool(tool: ToolDescriptor) -> str:
    schema = tool.input_schema or {}
    properties: Dict[str, Any] = schema.get("properties") or {}
    required = set(schema.get("required") or [])
    line = f"  - {tool.name}: {tool.description}"
    if properties:
        params = ", ".join(
            _format_parameter(name, prop or {}, name in required) for name, prop in properties.items()
        )
        line += f"\n    Parameters: {params}"
    return line


def format_file_references(files: Sequence[FileAttachment]) -> str:
    return "\n".join(
        f"- {PLACEHOLDER_TEMPLATE.format(index=i)}: {f.name} ({f.mime_type}, {f.size} bytes)"
        for i, f in enumerate(files)
    )


class PromptBuilder:
    """Renders the system prompt for the enabled slice of the catalog.

    Output depends only on the catalog, the enablement map and the attachments,
    so identical inputs always produce byte-identical prompts.
    """

    def __init__(self, catalog: CapabilityCatalog) -> None:
        self._catalog = catalog

    def build(
        self,
        enabled_categories: Mapping[str, bool],
        files: Sequence[FileAttachment] = (),
    ) -> str:
        enabled_tools = self._catalog.list_enabled(enabled_categories)
        grouped = self._catalog.grouped(enabled_tools)

        blocks: List[str] = []
        for category, tools in grouped.items():
            lines = "\n".join(format_tool(t) for t in tools)
            blocks.append(f"### {category_label(category)}\n{lines}")

        sections = [
            PREAMBLE,
            f"## Available Tools ({len(enabled_tools)} tools across {len(grouped)} categories)\n\n"
            + ("\n\n".join(blocks) if blocks else "No tools are currently enabled."),
            EXECUTION_INSTRUCTIONS,
        ]
        if files:
            sections.append(
                "## Attached Files\n"
                "The user attached these files:\n"
                f"{format_file_references(files)}\n\n"
                "When a tool parameter expects file content, pass the placeholder token exactly "
                f"as shown (for example \"{PLACEHOLDER_TEMPLATE.format(index=0)}\"). It is replaced "
                "with the file's content when the tool runs. Never invent file content or "
                "placeholders for files that were not attached."
            )
        sections.append(GUIDELINES)
        return "\n\n".join(sections)

    @staticmethod
    def user_turn(message: str, files: Sequence[FileAttachment] = ()) -> str:
        """Current user message, annotated with file references when files are attached."""
        if not files:
            return message
        return f"{message}\n\n[Attached files]\n{format_file_references(files)}"
