from toolchat.agent.parser import parse_tool_calls, strip_tool_blocks
from toolchat.models import ToolCallRequest


def _block(body: str) -> str:
    return f"```tool\n{body}\n```"


def test_single_block() -> None:
    text = "Sure.\n" + _block('{"tool": "agent_tools_crypto_hash", "arguments": {"input": "abc"}}')
    assert parse_tool_calls(text) == [
        ToolCallRequest(tool="agent_tools_crypto_hash", arguments={"input": "abc"})
    ]


def test_blocks_returned_in_order() -> None:
    text = "\n".join(
        [
            _block('{"tool": "b_tool"}'),
            "some prose",
            _block('{"tool": "a_tool", "arguments": {"x": 1}}'),
        ]
    )
    assert [c.tool for c in parse_tool_calls(text)] == ["b_tool", "a_tool"]


def test_malformed_block_is_skipped() -> None:
    text = "\n".join(
        [
            _block('{"tool": "one"}'),
            _block('{"tool": "two", "arguments": {'),
            _block('{"tool": "three"}'),
        ]
    )
    calls = parse_tool_calls(text)
    assert [c.tool for c in calls] == ["one", "three"]


def test_missing_or_non_string_tool_is_skipped() -> None:
    text = "\n".join(
        [
            _block('{"arguments": {"a": 1}}'),
            _block('{"tool": 42}'),
            _block('["not", "an", "object"]'),
            _block('{"tool": "ok"}'),
        ]
    )
    assert [c.tool for c in parse_tool_calls(text)] == ["ok"]


def test_arguments_default_to_empty() -> None:
    text = _block('{"tool": "x"}') + _block('{"tool": "y", "arguments": "nope"}')
    calls = parse_tool_calls(text)
    assert [c.arguments for c in calls] == [{}, {}]


def test_parsing_is_idempotent() -> None:
    text = _block('{"tool": "x", "arguments": {"k": "v"}}') + "\n" + _block('{"tool": "y"}')
    assert parse_tool_calls(text) == parse_tool_calls(text)


def test_other_fences_are_ignored() -> None:
    text = '```json\n{"tool": "x"}\n```\nplain text without blocks'
    assert parse_tool_calls(text) == []
    assert parse_tool_calls("") == []


def test_strip_tool_blocks() -> None:
    text = "Before\n" + _block('{"tool": "x"}') + "\nAfter"
    assert strip_tool_blocks(text) == "Before\n\nAfter"
