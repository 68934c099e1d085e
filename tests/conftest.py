import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, List
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError, APIStatusError


_root = Path(__file__).resolve().parents[1]
_src = _root / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

REQUEST = httpx.Request("POST", "https://completions.test/v1/chat/completions")


def completion_response(text: str, total_tokens: int = 5) -> SimpleNamespace:
    """Shape of an OpenAI chat completion as far as the gateway reads it."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=total_tokens - 2, completion_tokens=2, total_tokens=total_tokens),
    )


def connection_error() -> APIConnectionError:
    return APIConnectionError(request=REQUEST)


def status_error(status: int) -> APIStatusError:
    return APIStatusError(
        f"HTTP {status}", response=httpx.Response(status, request=REQUEST), body=None
    )


def mock_openai_client(side_effect: List[Any]) -> MagicMock:
    """AsyncOpenAI stand-in whose chat.completions.create yields the given items in turn."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        side_effect=[completion_response(s) if isinstance(s, str) else s for s in side_effect]
    )
    return client


class SleepRecorder:
    """Async sleep replacement that records requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(float(seconds))


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
