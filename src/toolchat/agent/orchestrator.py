"""Multi-round tool-calling loop modelled as an explicit state machine.

    AWAITING_COMPLETION --no tool calls--> DONE
    AWAITING_COMPLETION --tool calls--> HAS_TOOL_CALLS -> EXECUTING
    EXECUTING --rounds left--> FEEDING_BACK -> AWAITING_COMPLETION
    EXECUTING --round limit--> ROUND_LIMIT_REACHED -> DONE
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Sequence

from ..errors import TransientCompletionError
from ..models import CompletionUsage, FileAttachment, ToolCallRequest, ToolCallResult
from .executor import ToolExecutionEngine
from .finisher import looks_like_base64
from .gateway import CompletionGateway
from .parser import parse_tool_calls, strip_tool_blocks

logger = logging.getLogger(__name__)

MAX_RESULT_CHARS_FOR_MODEL = 4000


class LoopState(str, Enum):
    AWAITING_COMPLETION = "awaiting_completion"
    HAS_TOOL_CALLS = "has_tool_calls"
    EXECUTING = "executing"
    FEEDING_BACK = "feeding_back"
    ROUND_LIMIT_REACHED = "round_limit_reached"
    DONE = "done"


@dataclass
class LoopOutcome:
    text: str
    tool_results: List[ToolCallResult] = field(default_factory=list)
    rounds: int = 0
    completions: int = 0
    used_fallback: bool = False
    states: List[LoopState] = field(default_factory=list)
    usage: CompletionUsage = field(default_factory=CompletionUsage)


def describe_result_for_model(result: ToolCallResult) -> str:
    """Result text as shown to the model: binary payloads redacted, long text truncated."""
    text = result.result
    if result.success and looks_like_base64(text):
        return f"[binary output, {len(text.strip())} base64 characters; delivered to the user as a file]"
    if len(text) > MAX_RESULT_CHARS_FOR_MODEL:
        return text[:MAX_RESULT_CHARS_FOR_MODEL] + f"\n... [truncated, {len(text)} characters total]"
    return text


def format_results_for_model(results: Sequence[ToolCallResult]) -> str:
    return "\n\n---\n\n".join(
        f"Tool: {r.tool}\nStatus: {'Success' if r.success else 'Error'}\nResult:\n{describe_result_for_model(r)}"
        for r in results
    )


def follow_up_turn(results: Sequence[ToolCallResult]) -> str:
    return (
        f"Here are the tool execution results:\n\n{format_results_for_model(results)}\n\n"
        "If another tool is needed to finish the task, call it. Otherwise summarize the "
        "results for the user in a clear, helpful way."
    )


def final_round_turn(results: Sequence[ToolCallResult]) -> str:
    return (
        f"Here are the tool execution results:\n\n{format_results_for_model(results)}\n\n"
        "The tool round limit has been reached. Do not call any more tools. "
        "Summarize the results for the user in a clear, helpful way."
    )


def templated_summary(results: Sequence[ToolCallResult]) -> str:
    lines = [
        f"**{r.tool}**: {describe_result_for_model(r) if r.success else 'Error - ' + r.result}" for r in results
    ]
    return "I executed the tools. Here are the results:\n\n" + "\n\n".join(lines)


class ChatOrchestrator:
    """Drives completion -> tool calls -> execution -> feedback rounds for one request."""

    def __init__(
        self,
        gateway: CompletionGateway,
        engine: ToolExecutionEngine,
        *,
        max_rounds: int = 3,
    ) -> None:
        self._gateway = gateway
        self._engine = engine
        self._max_rounds = max(1, max_rounds)

    async def run(
        self,
        messages: List[Dict[str, str]],
        *,
        model: str | None,
        enabled_categories: Mapping[str, bool],
        files: Sequence[FileAttachment] = (),
    ) -> LoopOutcome:
        outcome = LoopOutcome(text="")
        state = LoopState.AWAITING_COMPLETION
        assistant_text = ""
        requests: List[ToolCallRequest] = []
        round_results: List[ToolCallResult] = []

        while state is not LoopState.DONE:
            outcome.states.append(state)

            if state is LoopState.AWAITING_COMPLETION:
                try:
                    completion = await self._gateway.complete(messages, model)
                except TransientCompletionError:
                    if not outcome.tool_results:
                        raise
                    logger.warning("Follow-up completion failed after %d round(s); using summary", outcome.rounds)
                    outcome.text = templated_summary(outcome.tool_results)
                    outcome.used_fallback = True
                    state = LoopState.DONE
                    continue
                outcome.completions += 1
                outcome.usage.add(completion.usage)
                assistant_text = completion.text
                requests = parse_tool_calls(assistant_text)
                if requests:
                    state = LoopState.HAS_TOOL_CALLS
                else:
                    outcome.text = assistant_text
                    state = LoopState.DONE

            elif state is LoopState.HAS_TOOL_CALLS:
                outcome.rounds += 1
                logger.info("Round %d: %d tool call(s) requested", outcome.rounds, len(requests))
                state = LoopState.EXECUTING

            elif state is LoopState.EXECUTING:
                # Sequential so one call's failure and timing never bleed into another's.
                round_results = await self._engine.execute_batch(
                    requests, enabled_categories, files, round_index=outcome.rounds, concurrent=False
                )
                outcome.tool_results.extend(round_results)
                if outcome.rounds >= self._max_rounds:
                    state = LoopState.ROUND_LIMIT_REACHED
                else:
                    state = LoopState.FEEDING_BACK

            elif state is LoopState.FEEDING_BACK:
                messages.append({"role": "assistant", "content": assistant_text})
                messages.append({"role": "user", "content": follow_up_turn(round_results)})
                state = LoopState.AWAITING_COMPLETION

            elif state is LoopState.ROUND_LIMIT_REACHED:
                logger.info("Tool round limit (%d) reached; requesting final summary", self._max_rounds)
                messages.append({"role": "assistant", "content": assistant_text})
                messages.append({"role": "user", "content": final_round_turn(round_results)})
                try:
                    completion = await self._gateway.complete(messages, model)
                    outcome.completions += 1
                    outcome.usage.add(completion.usage)
                    outcome.text = strip_tool_blocks(completion.text) or templated_summary(outcome.tool_results)
                except TransientCompletionError:
                    logger.warning("Final summary completion failed; using templated summary")
                    outcome.text = templated_summary(outcome.tool_results)
                    outcome.used_fallback = True
                state = LoopState.DONE

        outcome.states.append(LoopState.DONE)
        return outcome
