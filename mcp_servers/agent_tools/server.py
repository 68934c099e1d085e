"""Agent Tools math & date/time MCP server."""

import json
import statistics
from datetime import datetime

from mcp.server.fastmcp import FastMCP

mcp = FastMCP("Agent Tools Math & DateTime", json_response=True)


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"Not an ISO 8601 date/time: {value}") from e


@mcp.tool(name="agent_tools_math_statistics")
def math_statistics(values: list[float]) -> str:
    """Descriptive statistics (count, sum, mean, median, min, max, stdev) for a list of numbers."""
    if not values:
        raise ValueError("At least one value is required")
    return json.dumps(
        {
            "count": len(values),
            "sum": sum(values),
            "mean": statistics.fmean(values),
            "median": statistics.median(values),
            "min": min(values),
            "max": max(values),
            "stdev": statistics.stdev(values) if len(values) > 1 else 0.0,
        },
        indent=2,
    )


@mcp.tool(name="agent_tools_math_percentage")
def math_percentage(value: float, total: float) -> str:
    """What percentage `value` is of `total`."""
    if total == 0:
        raise ValueError("Total must not be zero")
    return json.dumps({"value": value, "total": total, "percentage": round(value / total * 100, 4)})


@mcp.tool(name="agent_tools_datetime_diff")
def datetime_diff(start: str, end: str) -> str:
    """Difference between two ISO 8601 date/times in days, hours, minutes and seconds."""
    delta = _parse_datetime(end) - _parse_datetime(start)
    seconds = delta.total_seconds()
    return json.dumps(
        {
            "seconds": seconds,
            "minutes": seconds / 60,
            "hours": seconds / 3600,
            "days": seconds / 86400,
        },
        indent=2,
    )


@mcp.tool(name="agent_tools_datetime_format")
def datetime_format(value: str, format: str = "%Y-%m-%d %H:%M:%S") -> str:
    """Format an ISO 8601 date/time with a strftime pattern."""
    return _parse_datetime(value).strftime(format)


if __name__ == "__main__":
    mcp.run(transport="stdio")
