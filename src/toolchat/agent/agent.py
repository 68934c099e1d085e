import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence

from ..errors import ChatTimeoutError, FileTooLargeError, InvalidAttachmentError, InvalidRequestError, TooManyFilesError
from ..models import ChatTurn, FileAttachment
from ..services.category_settings import CategorySettingsService
from ..services.session import SessionManager
from ..settings import Settings, get_settings
from .catalog import CapabilityCatalog, category_label, is_category_enabled
from .executor import ToolExecutionEngine
from .finisher import finish
from .gateway import CompletionGateway
from .orchestrator import ChatOrchestrator
from .prompt import PromptBuilder
from .tools import build_catalog, load_mcp_tools

logger = logging.getLogger(__name__)

LIMIT_URL = "https://atmatic.ai/tools"
ALLOWED_HISTORY_ROLES = {"user", "assistant"}


@dataclass
class ChatOutcome:
    """Response body plus the session token to set (None when the cookie is left alone)."""

    body: Dict[str, Any]
    session_token: str | None = None


def _decoded_length(data: str) -> int:
    try:
        return len(base64.b64decode(data, validate=True))
    except (binascii.Error, ValueError) as e:
        raise InvalidAttachmentError(f"File payload is not valid base64: {e}") from e


class ToolChatService:
    """Handles one chat request: session and quota, prompt, tool rounds, finishing."""

    def __init__(
        self,
        settings: Settings,
        *,
        catalog: CapabilityCatalog | None = None,
        sessions: SessionManager | None = None,
        gateway: CompletionGateway | None = None,
        category_settings: CategorySettingsService | None = None,
    ) -> None:
        self._settings = settings
        self.catalog = catalog or build_catalog()
        self.sessions = sessions or SessionManager.from_settings(settings)
        self.gateway = gateway or CompletionGateway(settings)
        self.category_settings = category_settings or CategorySettingsService()
        self._prompts = PromptBuilder(self.catalog)
        self._engine = ToolExecutionEngine(self.catalog, timeout_seconds=settings.tool_timeout_seconds)
        self._orchestrator = ChatOrchestrator(self.gateway, self._engine, max_rounds=settings.max_tool_rounds)

    async def load_mcp_tools(self) -> int:
        """Register tools from configured MCP servers. Returns how many were added."""
        tools = await load_mcp_tools(self._settings.mcp_commands())
        for tool in tools:
            self.catalog.register(tool)
        return len(tools)

    def validate_files(self, files: Sequence[FileAttachment]) -> None:
        max_files = self._settings.max_files_per_request
        if len(files) > max_files:
            raise TooManyFilesError(f"At most {max_files} files can be attached per message")
        limit = self._settings.max_file_size_bytes
        limit_mb = self._settings.max_file_size_mb
        total = 0
        for i, f in enumerate(files, 1):
            size = _decoded_length(f.data)
            if size > limit:
                raise FileTooLargeError(f"File {i} ({f.name}) exceeds {limit_mb:g}MB limit (got {size} bytes)")
            f.size = size
            total += size
        if total > limit * 3:
            raise FileTooLargeError(f"Total file size exceeds {limit_mb * 3:g}MB limit (got {total} bytes)")

    def build_messages(
        self,
        system_prompt: str,
        message: str,
        history: Sequence[ChatTurn],
        files: Sequence[FileAttachment],
    ) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": system_prompt}]
        recent = list(history)[-self._settings.chat_history_limit:] if self._settings.chat_history_limit > 0 else []
        for turn in recent:
            if turn.role in ALLOWED_HISTORY_ROLES:
                messages.append({"role": turn.role, "content": turn.content})
        messages.append({"role": "user", "content": PromptBuilder.user_turn(message, files)})
        return messages

    async def chat(
        self,
        message: str,
        *,
        session_token: str | None = None,
        enabled_categories: Mapping[str, bool] | None = None,
        model: str | None = None,
        history: Sequence[ChatTurn] = (),
        files: Sequence[FileAttachment] = (),
    ) -> ChatOutcome:
        if not message or not message.strip():
            raise InvalidRequestError("Message is required")
        self.validate_files(files)

        session = self.sessions.read_session(session_token) or self.sessions.create_session()
        if self.sessions.is_limited(session):
            limit = self.sessions.message_limit
            logger.info("Session %s reached message limit %d", session.id, limit)
            return ChatOutcome(
                body={
                    "limited": True,
                    "message": (
                        f"You've reached the free message limit ({limit} messages). "
                        f"Visit {LIMIT_URL.removeprefix('https://')} for unlimited access."
                    ),
                    "url": LIMIT_URL,
                    "messagesRemaining": 0,
                }
            )

        enabled = await self.category_settings.effective_state(enabled_categories or {})
        system_prompt = self._prompts.build(enabled, files)
        messages = self.build_messages(system_prompt, message, history, files)

        try:
            outcome = await asyncio.wait_for(
                self._orchestrator.run(
                    messages,
                    model=model or self._settings.chat_model,
                    enabled_categories=enabled,
                    files=files,
                ),
                timeout=self._settings.request_budget_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error("Chat request exceeded %.0fs budget", self._settings.request_budget_seconds)
            raise ChatTimeoutError("Chat request took too long. Please try again.") from e

        logger.info(
            "Session %s: %d round(s), %d completion(s), %d tool result(s), %d tokens",
            session.id,
            outcome.rounds,
            outcome.completions,
            len(outcome.tool_results),
            outcome.usage.total_tokens,
        )
        reply = finish(outcome.text, outcome.tool_results)

        self.sessions.record_message(session)
        token = self.sessions.write_session(session)

        body: Dict[str, Any] = {
            "message": reply.text,
            "messagesRemaining": self.sessions.messages_remaining(session),
        }
        if reply.tool_results:
            body["toolResults"] = [r.to_dict() for r in reply.tool_results]
        if reply.file_outputs:
            body["fileOutputs"] = [f.to_dict() for f in reply.file_outputs]
        return ChatOutcome(body=body, session_token=token)

    def status(self, session_token: str | None) -> Dict[str, Any]:
        session = self.sessions.read_session(session_token)
        return {
            "hasSession": session is not None,
            "messageCount": session.message_count if session else 0,
            "messageLimit": self.sessions.message_limit,
            "messagesRemaining": self.sessions.messages_remaining(session) if session else None,
            "configured": self.gateway.configured,
            "model": self._settings.chat_model,
        }

    async def list_tools(self) -> List[Dict[str, Any]]:
        state = await self.category_settings.get_state()
        return [
            {
                "category": category,
                "label": category_label(category),
                "enabled": is_category_enabled(category, state),
                "tools": [{"name": t.name, "description": t.description} for t in tools],
            }
            for category, tools in self.catalog.grouped().items()
        ]


_SERVICE: ToolChatService | None = None


def get_chat_service() -> ToolChatService:
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = ToolChatService(get_settings())
    return _SERVICE


def set_chat_service(service: ToolChatService | None) -> None:
    global _SERVICE
    _SERVICE = service


__all__ = [
    "ChatOutcome",
    "ToolChatService",
    "get_chat_service",
    "set_chat_service",
]
