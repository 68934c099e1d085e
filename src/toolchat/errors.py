from enum import Enum


class ChatError(Exception):
    """Base error carrying the HTTP status and an optional machine-readable code."""

    status_code: int = 500
    code: str | None = None

    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        super().__init__(message)

    def to_payload(self) -> dict:
        payload: dict = {"error": self.message}
        if self.code:
            payload["code"] = self.code
        return payload


class InvalidRequestError(ChatError):
    status_code = 400


class TooManyFilesError(InvalidRequestError):
    pass


class InvalidAttachmentError(InvalidRequestError):
    pass


class FileTooLargeError(ChatError):
    status_code = 413


class ChatTimeoutError(ChatError):
    status_code = 504
    code = "CHAT_TIMEOUT"


class CompletionErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    QUOTA_EXHAUSTED = "quota_exhausted"
    TRANSIENT = "transient"


class CompletionError(ChatError):
    """Failure of the chat-completion dependency, classified by kind."""

    kind: CompletionErrorKind = CompletionErrorKind.TRANSIENT

    @property
    def fatal(self) -> bool:
        return self.kind is not CompletionErrorKind.TRANSIENT


class ConfigurationError(CompletionError):
    kind = CompletionErrorKind.CONFIGURATION
    status_code = 503
    code = "AI_NOT_CONFIGURED"


class QuotaExhaustedError(CompletionError):
    kind = CompletionErrorKind.QUOTA_EXHAUSTED
    status_code = 503
    code = "CREDITS_EXHAUSTED"


class TransientCompletionError(CompletionError):
    kind = CompletionErrorKind.TRANSIENT
    status_code = 502
