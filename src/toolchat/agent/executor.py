import asyncio
import inspect
import logging
import re
from typing import Any, Dict, List, Mapping, Sequence

from ..models import FileAttachment, ToolCallRequest, ToolCallResult, ToolResponse
from .catalog import CapabilityCatalog, is_category_enabled

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"^__file:(\d+)__$")


def resolve_placeholders(value: Any, files: Sequence[FileAttachment]) -> Any:
    """Replace `__file:N__` strings with the Nth attachment's payload.

    Nested lists and objects are walked. Out-of-range indices are left as the
    literal placeholder so the tool reports the problem.
    """
    if isinstance(value, str):
        match = PLACEHOLDER_RE.match(value.strip())
        if match:
            index = int(match.group(1))
            if index < len(files):
                return files[index].data
        return value
    if isinstance(value, list):
        return [resolve_placeholders(v, files) for v in value]
    if isinstance(value, dict):
        return {k: resolve_placeholders(v, files) for k, v in value.items()}
    return value


class ToolExecutionEngine:
    """Runs tool requests against the catalog; a failing tool never raises out of here."""

    def __init__(self, catalog: CapabilityCatalog, *, timeout_seconds: float = 30.0) -> None:
        self._catalog = catalog
        self._timeout = timeout_seconds

    async def execute(
        self,
        request: ToolCallRequest,
        enabled_categories: Mapping[str, bool],
        files: Sequence[FileAttachment] = (),
        *,
        round_index: int = 1,
    ) -> ToolCallResult:
        name = request.tool
        tool = self._catalog.find_by_name(name)
        if tool is None:
            logger.info("Model requested unknown tool %s", name)
            return ToolCallResult(tool=name, success=False, result=f"Unknown tool: {name}", round=round_index)

        category = self._catalog.category_of(name)
        if not is_category_enabled(category, enabled_categories):
            logger.info("Rejected call to %s: category %s disabled", name, category)
            return ToolCallResult(
                tool=name,
                success=False,
                result=f'Tool category "{category}" is disabled. Enable it in the tool panel.',
                round=round_index,
            )

        arguments: Dict[str, Any] = resolve_placeholders(dict(request.arguments), files)
        try:
            response = await self._invoke(tool.handler, arguments)
        except asyncio.TimeoutError:
            logger.warning("Tool %s timed out after %.1fs", name, self._timeout)
            return ToolCallResult(
                tool=name,
                success=False,
                result=f"Error: tool timed out after {self._timeout:g} seconds",
                round=round_index,
            )
        except Exception as e:
            logger.warning("Tool %s failed: %s", name, e)
            return ToolCallResult(tool=name, success=False, result=f"Error: {e}", round=round_index)

        logger.info("Tool %s (%s) completed, error=%s", name, category, response.is_error)
        return ToolCallResult(tool=name, success=not response.is_error, result=response.content, round=round_index)

    async def _invoke(self, handler: Any, arguments: Dict[str, Any]) -> ToolResponse:
        if inspect.iscoroutinefunction(handler):
            response = await asyncio.wait_for(handler(arguments), timeout=self._timeout)
        else:
            response = await asyncio.wait_for(asyncio.to_thread(handler, arguments), timeout=self._timeout)
            if inspect.isawaitable(response):
                response = await asyncio.wait_for(response, timeout=self._timeout)
        if isinstance(response, ToolResponse):
            return response
        if isinstance(response, str):
            return ToolResponse(content=response)
        raise TypeError(f"Tool handler returned {type(response).__name__}, expected ToolResponse")

    async def execute_batch(
        self,
        requests: Sequence[ToolCallRequest],
        enabled_categories: Mapping[str, bool],
        files: Sequence[FileAttachment] = (),
        *,
        round_index: int = 1,
        concurrent: bool = True,
    ) -> List[ToolCallResult]:
        """Execute a batch; results are returned in request order either way."""
        if concurrent:
            return list(
                await asyncio.gather(
                    *(self.execute(r, enabled_categories, files, round_index=round_index) for r in requests)
                )
            )
        results: List[ToolCallResult] = []
        for request in requests:
            results.append(await self.execute(request, enabled_categories, files, round_index=round_index))
        return results
