"""Stateless chat sessions carried in an HMAC-signed cookie token."""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import time
import uuid
from typing import Any, Callable, Dict

from ..models import ChatSession
from ..settings import Settings

logger = logging.getLogger(__name__)

COOKIE_NAME = "agent-tools-chat-session"
TOKEN_DELIMITER = "."


def _session_to_dict(session: ChatSession) -> Dict[str, Any]:
    """Serialize ChatSession to a JSON-serializable dict."""
    return {
        "id": session.id,
        "messageCount": session.message_count,
        "createdAt": session.created_at,
    }


def _dict_to_session(data: Dict[str, Any]) -> ChatSession:
    """Build ChatSession from a decoded token payload."""
    return ChatSession(
        id=str(data["id"]),
        message_count=int(data["messageCount"]),
        created_at=int(data["createdAt"]),
    )


class SessionManager:
    """Creates, verifies and signs chat sessions; enforces the message quota."""

    def __init__(
        self,
        secret: str | None,
        ttl_seconds: int,
        message_limit: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            logger.warning(
                "CHAT_SESSION_SECRET not set; using a random per-process secret "
                "(sessions will not survive a restart)"
            )
            secret = secrets.token_hex(32)
        self._secret = secret.encode("utf-8")
        self._ttl_ms = ttl_seconds * 1000
        self._clock = clock
        self.ttl_seconds = ttl_seconds
        self.message_limit = max(0, message_limit)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionManager":
        return cls(
            secret=settings.chat_session_secret,
            ttl_seconds=settings.chat_session_ttl_seconds,
            message_limit=settings.chat_message_limit,
        )

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _sign(self, payload: str) -> str:
        return hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def create_session(self) -> ChatSession:
        session = ChatSession(id=str(uuid.uuid4()), message_count=0, created_at=self._now_ms())
        logger.info("Created chat session %s", session.id)
        return session

    def read_session(self, token: str | None) -> ChatSession | None:
        """Return the session in `token`, or None if missing, forged, malformed or expired."""
        if not token:
            return None
        payload, sep, signature = token.rpartition(TOKEN_DELIMITER)
        if not sep or not payload:
            return None
        expected = self._sign(payload).encode("ascii")
        if not hmac.compare_digest(expected, signature.encode("utf-8", "surrogateescape")):
            logger.warning("Rejected chat session token with invalid signature")
            return None
        try:
            data = json.loads(base64.b64decode(payload, validate=True).decode("utf-8"))
            session = _dict_to_session(data)
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Invalid chat session payload: %s", e)
            return None
        if self._now_ms() - session.created_at > self._ttl_ms:
            logger.info("Chat session %s expired", session.id)
            return None
        return session

    def write_session(self, session: ChatSession) -> str:
        raw = json.dumps(_session_to_dict(session), separators=(",", ":"))
        payload = base64.b64encode(raw.encode("utf-8")).decode("ascii")
        return f"{payload}{TOKEN_DELIMITER}{self._sign(payload)}"

    def is_limited(self, session: ChatSession) -> bool:
        return self.message_limit > 0 and session.message_count >= self.message_limit

    def messages_remaining(self, session: ChatSession) -> int | None:
        if self.message_limit <= 0:
            return None
        return max(0, self.message_limit - session.message_count)

    def record_message(self, session: ChatSession) -> None:
        session.message_count += 1

    def cookie_options(self) -> Dict[str, Any]:
        return {
            "httponly": True,
            "samesite": "lax",
            "path": "/",
            "max_age": self.ttl_seconds,
        }
