import pytest

from toolchat.agent.prompt import PromptBuilder
from toolchat.agent.tools import build_catalog
from toolchat.models import FileAttachment

CATALOG = build_catalog()
CATEGORIES = sorted(CATALOG.grouped())


@pytest.fixture
def builder() -> PromptBuilder:
    return PromptBuilder(CATALOG)


@pytest.mark.parametrize("disabled", CATEGORIES)
def test_disabled_category_tools_never_mentioned(builder: PromptBuilder, disabled: str) -> None:
    prompt = builder.build({disabled: False})
    for tool in CATALOG:
        if tool.category == disabled:
            assert tool.name not in prompt
        else:
            assert tool.name in prompt


def test_all_disabled(builder: PromptBuilder) -> None:
    prompt = builder.build({c: False for c in CATEGORIES})
    assert "agent_tools_" not in prompt
    assert "No tools are currently enabled." in prompt


def test_prompt_is_deterministic(builder: PromptBuilder) -> None:
    files = [FileAttachment(name="a.txt", size=3, mime_type="text/plain", data="YWJj")]
    state = {"pdf": False, "crypto": True}
    assert builder.build(state, files) == builder.build(dict(state), list(files))


def test_tool_blocks_list_parameter_signature(builder: PromptBuilder) -> None:
    prompt = builder.build({})
    assert "### Crypto & Encoding" in prompt
    assert "  - agent_tools_crypto_hash: Hash text with md5, sha1, sha256 or sha512" in prompt
    assert "input (string, required)" in prompt
    assert "algorithm (string, optional, one of: md5, sha1, sha256, sha512)" in prompt
    assert "```tool" in prompt


def test_file_placeholder_instructions_only_with_files(builder: PromptBuilder) -> None:
    assert "__file:" not in builder.build({})
    files = [
        FileAttachment(name="report.pdf", size=1024, mime_type="application/pdf", data="AAAA"),
        FileAttachment(name="logo.png", size=10, mime_type="image/png", data="AAAA"),
    ]
    prompt = builder.build({}, files)
    assert "- __file:0__: report.pdf (application/pdf, 1024 bytes)" in prompt
    assert "- __file:1__: logo.png (image/png, 10 bytes)" in prompt
    assert "Never invent file content" in prompt


def test_binary_output_instruction_present(builder: PromptBuilder) -> None:
    assert "Never paste base64 data" in builder.build({})


def test_user_turn_mentions_attachments() -> None:
    assert PromptBuilder.user_turn("hello") == "hello"
    files = [FileAttachment(name="data.csv", size=5, mime_type="text/csv", data="YSxiCg==")]
    turn = PromptBuilder.user_turn("zip this", files)
    assert turn.startswith("zip this")
    assert "__file:0__: data.csv" in turn
