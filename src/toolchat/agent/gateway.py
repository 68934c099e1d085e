"""Chat-completion gateway over an OpenAI-compatible endpoint with bounded retry."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List

from openai import APIConnectionError, APIError, APIStatusError, APITimeoutError, AsyncOpenAI
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import ConfigurationError, QuotaExhaustedError, TransientCompletionError
from ..models import Completion, CompletionUsage
from ..settings import Settings

logger = logging.getLogger(__name__)

QUOTA_STATUSES = {402, 429}
CREDENTIAL_STATUSES = {401, 403}


def classify_status_error(e: APIStatusError) -> Exception:
    """Map a provider HTTP error onto the completion error taxonomy."""
    status = e.status_code
    if status in QUOTA_STATUSES:
        return QuotaExhaustedError("AI credits exhausted")
    if status in CREDENTIAL_STATUSES:
        return ConfigurationError(f"AI service rejected the configured credential ({status})")
    return TransientCompletionError(f"Completion API error ({status}): {e.message}")


def _usage_from(response: Any) -> CompletionUsage | None:
    usage = getattr(response, "usage", None)
    if usage is None:
        return None
    return CompletionUsage(
        prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        total_tokens=getattr(usage, "total_tokens", 0) or 0,
    )


class CompletionGateway:
    """Calls the completion API; retries transient failures, fails fast on fatal ones."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: AsyncOpenAI | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._client = client
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return bool(self._settings.hf_token)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._settings.hf_token,
                base_url=self._settings.completion_base_url,
                timeout=self._settings.completion_timeout_seconds,
                max_retries=0,
            )
        return self._client

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            sleep=self._sleep,
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.completion_max_attempts)),
            wait=wait_exponential(multiplier=self._settings.completion_backoff_base_seconds, exp_base=2),
            retry=retry_if_exception_type(TransientCompletionError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )

    async def complete(self, messages: List[Dict[str, str]], model: str | None = None) -> Completion:
        if not self.configured:
            raise ConfigurationError("AI service is not configured. Set the HF_TOKEN environment variable.")
        model = model or self._settings.chat_model
        async for attempt in self._retrying():
            with attempt:
                return await self._complete_once(messages, model)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _complete_once(self, messages: List[Dict[str, str]], model: str) -> Completion:
        try:
            response = await self._get_client().chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=self._settings.completion_max_tokens,
                temperature=self._settings.completion_temperature,
            )
        except APIStatusError as e:
            raise classify_status_error(e) from e
        except (APIConnectionError, APITimeoutError) as e:
            raise TransientCompletionError(f"Completion API unreachable: {e}") from e
        except APIError as e:
            raise TransientCompletionError(f"Completion API error: {e}") from e

        try:
            text = response.choices[0].message.content or ""
        except (AttributeError, IndexError, TypeError) as e:
            raise TransientCompletionError(f"Unexpected completion response: {e}") from e
        return Completion(text=text, usage=_usage_from(response))
