from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Union


@dataclass
class ChatSession:
    """Quota-tracking chat session carried in a signed cookie."""

    id: str
    message_count: int = 0
    created_at: int = 0  # epoch milliseconds


@dataclass
class ChatTurn:
    role: str
    content: str


@dataclass
class FileAttachment:
    """File supplied with a chat request; `data` is the base64 payload."""

    name: str
    size: int
    mime_type: str
    data: str


@dataclass
class ToolResponse:
    """What a tool handler returns."""

    content: str
    is_error: bool = False


ToolHandler = Callable[[Dict[str, Any]], Union[ToolResponse, Awaitable[ToolResponse]]]


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    category: str
    description: str
    input_schema: Dict[str, Any]
    handler: ToolHandler = field(compare=False, repr=False)


@dataclass
class ToolCallRequest:
    tool: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCallResult:
    tool: str
    success: bool
    result: str
    round: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"tool": self.tool, "success": self.success, "result": self.result}


@dataclass
class FileOutput:
    name: str
    mime_type: str
    data: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "mimeType": self.mime_type, "data": self.data}


@dataclass
class CompletionUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: "CompletionUsage | None") -> None:
        if other is None:
            return
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.total_tokens += other.total_tokens


@dataclass
class Completion:
    text: str
    usage: CompletionUsage | None = None


@dataclass
class FinishedReply:
    text: str
    tool_results: List[ToolCallResult] = field(default_factory=list)
    file_outputs: List[FileOutput] = field(default_factory=list)
