from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    cors_origins: str = "*"

    hf_token: str | None = None
    completion_base_url: str = "https://router.huggingface.co/v1"
    chat_model: str = "microsoft/Phi-4-mini-instruct"
    completion_max_tokens: int = 2048
    completion_temperature: float = 0.7
    completion_timeout_seconds: float = 60.0
    completion_max_attempts: int = 3
    completion_backoff_base_seconds: float = 1.0

    chat_session_secret: str | None = None
    chat_session_ttl_seconds: int = 1800  # 30 minutes
    chat_message_limit: int = 0
    chat_history_limit: int = 20
    max_tool_rounds: int = 3
    request_budget_seconds: float = 240.0
    tool_timeout_seconds: float = 30.0

    max_file_size_mb: float = 10
    max_files_per_request: int = 3

    redis_url: str | None = None

    # Comma-separated stdio commands, e.g. "python mcp_servers/agent_tools/server.py"
    mcp_server_cmds: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    def mcp_commands(self) -> list[str]:
        """Return the configured MCP server commands as a list."""
        if not self.mcp_server_cmds:
            return []
        return [c.strip() for c in self.mcp_server_cmds.split(",") if c.strip()]


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Return the application settings singleton (loaded from env / .env)."""
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings()
    return _SETTINGS
