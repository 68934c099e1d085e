"""Built-in deterministic tools and the MCP bridge that exposes external tool servers."""

import base64
import binascii
import hashlib
import hmac
import io
import json
import logging
import os
import re
import unicodedata
import uuid
import zipfile
from functools import lru_cache
from typing import Any, Callable, Dict, List

from mcp import StdioServerParameters
from mcp.client.session import ClientSession
from mcp.client.stdio import stdio_client

from ..models import ToolDescriptor, ToolResponse
from .catalog import CapabilityCatalog, category_for_tool

logger = logging.getLogger(__name__)

HASH_ALGORITHMS = ["md5", "sha1", "sha256", "sha512"]


def crypto_hash(input: str, algorithm: str = "sha256") -> str:
    """Hash text with the given algorithm and return a hex digest."""
    if algorithm not in HASH_ALGORITHMS:
        raise ValueError(f"Unsupported algorithm: {algorithm}")
    digest = hashlib.new(algorithm, input.encode("utf-8")).hexdigest()
    return json.dumps({"algorithm": algorithm, "hash": digest, "inputLength": len(input)})


def crypto_hmac(input: str, key: str, algorithm: str = "sha256") -> str:
    if algorithm not in HASH_ALGORITHMS:
        raise ValueError(f"Unsupported algorithm: {algorithm}")
    digest = hmac.new(key.encode("utf-8"), input.encode("utf-8"), algorithm).hexdigest()
    return json.dumps({"algorithm": algorithm, "hmac": digest})


def crypto_base64_encode(input: str) -> str:
    return base64.b64encode(input.encode("utf-8")).decode("ascii")


def crypto_base64_decode(input: str) -> str:
    try:
        return base64.b64decode(input, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"Input is not valid base64-encoded UTF-8 text: {e}") from e


def crypto_uuid() -> str:
    return json.dumps({"uuid": str(uuid.uuid4()), "version": 4})


def text_slugify(text: str, separator: str = "-") -> str:
    normalized = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    words = re.findall(r"[a-z0-9]+", normalized.lower())
    return separator.join(words)


def text_word_count(text: str) -> str:
    words = re.findall(r"\S+", text)
    lines = text.splitlines() or [""]
    return json.dumps(
        {
            "words": len(words),
            "characters": len(text),
            "charactersNoSpaces": len(re.sub(r"\s", "", text)),
            "lines": len(lines),
        }
    )


def json_format(json_text: str, indent: int = 2, sort_keys: bool = False) -> str:
    data = json.loads(json_text)
    return json.dumps(data, indent=indent, sort_keys=sort_keys, ensure_ascii=False)


def json_validate(json_text: str) -> str:
    try:
        json.loads(json_text)
    except json.JSONDecodeError as e:
        return json.dumps({"valid": False, "error": e.msg, "line": e.lineno, "column": e.colno})
    return json.dumps({"valid": True})


def archive_create(files: List[Dict[str, str]]) -> str:
    """Zip the given entries ({name, content}; content is base64) and return the archive as base64."""
    if not files:
        raise ValueError("At least one file is required")
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for entry in files:
            name = entry.get("name")
            if not name:
                raise ValueError("Every archive entry needs a name")
            try:
                payload = base64.b64decode(entry.get("content", ""), validate=True)
            except binascii.Error as e:
                raise ValueError(f"Entry {name} content is not valid base64: {e}") from e
            archive.writestr(name, payload)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def archive_list(archive: str) -> str:
    try:
        raw = base64.b64decode(archive, validate=True)
        with zipfile.ZipFile(io.BytesIO(raw)) as zf:
            entries = [
                {"name": info.filename, "size": info.file_size, "compressedSize": info.compress_size}
                for info in zf.infolist()
            ]
    except (binascii.Error, zipfile.BadZipFile) as e:
        raise ValueError(f"Not a valid zip archive: {e}") from e
    return json.dumps({"entries": entries, "count": len(entries)})


def _string(description: str, **extra: Any) -> Dict[str, Any]:
    return {"type": "string", "description": description, **extra}


# name -> (function, description, parameters schema)
_BUILTIN_TOOLS: Dict[str, tuple] = {
    "agent_tools_crypto_hash": (
        crypto_hash,
        "Hash text with md5, sha1, sha256 or sha512",
        {
            "type": "object",
            "properties": {
                "input": _string("Text to hash"),
                "algorithm": _string("Hash algorithm", enum=HASH_ALGORITHMS),
            },
            "required": ["input"],
        },
    ),
    "agent_tools_crypto_hmac": (
        crypto_hmac,
        "Compute an HMAC of text with a secret key",
        {
            "type": "object",
            "properties": {
                "input": _string("Text to sign"),
                "key": _string("Secret key"),
                "algorithm": _string("Hash algorithm", enum=HASH_ALGORITHMS),
            },
            "required": ["input", "key"],
        },
    ),
    "agent_tools_crypto_base64_encode": (
        crypto_base64_encode,
        "Encode UTF-8 text as base64",
        {"type": "object", "properties": {"input": _string("Text to encode")}, "required": ["input"]},
    ),
    "agent_tools_crypto_base64_decode": (
        crypto_base64_decode,
        "Decode base64 into UTF-8 text",
        {"type": "object", "properties": {"input": _string("Base64 to decode")}, "required": ["input"]},
    ),
    "agent_tools_crypto_uuid": (
        crypto_uuid,
        "Generate a random version 4 UUID",
        {"type": "object", "properties": {}, "required": []},
    ),
    "agent_tools_text_slugify": (
        text_slugify,
        "Turn text into a URL-friendly slug",
        {
            "type": "object",
            "properties": {
                "text": _string("Text to slugify"),
                "separator": _string("Word separator (default '-')"),
            },
            "required": ["text"],
        },
    ),
    "agent_tools_text_word_count": (
        text_word_count,
        "Count words, characters and lines in text",
        {"type": "object", "properties": {"text": _string("Text to analyze")}, "required": ["text"]},
    ),
    "agent_tools_json_format": (
        json_format,
        "Pretty-print a JSON document",
        {
            "type": "object",
            "properties": {
                "json_text": _string("JSON document"),
                "indent": {"type": "integer", "description": "Spaces per indent level"},
                "sort_keys": {"type": "boolean", "description": "Sort object keys"},
            },
            "required": ["json_text"],
        },
    ),
    "agent_tools_json_validate": (
        json_validate,
        "Check whether text is valid JSON and report the first error",
        {"type": "object", "properties": {"json_text": _string("JSON document")}, "required": ["json_text"]},
    ),
    "agent_tools_archive_create": (
        archive_create,
        "Create a zip archive from files; returns the archive as base64",
        {
            "type": "object",
            "properties": {
                "files": {
                    "type": "array",
                    "description": "Entries as {name, content} with base64 content (file placeholders allowed)",
                    "items": {
                        "type": "object",
                        "properties": {"name": _string("Entry name"), "content": _string("Base64 content")},
                        "required": ["name", "content"],
                    },
                }
            },
            "required": ["files"],
        },
    ),
    "agent_tools_archive_list": (
        archive_list,
        "List the entries of a zip archive",
        {"type": "object", "properties": {"archive": _string("Zip archive (base64)")}, "required": ["archive"]},
    ),
}


def _wrap_function(func: Callable[..., str]) -> Callable[[Dict[str, Any]], ToolResponse]:
    def handler(arguments: Dict[str, Any]) -> ToolResponse:
        return ToolResponse(content=func(**arguments))

    handler.__name__ = func.__name__
    return handler


def make_descriptor(
    name: str,
    description: str,
    input_schema: Dict[str, Any],
    handler: Callable[[Dict[str, Any]], Any],
) -> ToolDescriptor:
    return ToolDescriptor(
        name=name,
        category=category_for_tool(name),
        description=description,
        input_schema=input_schema,
        handler=handler,
    )


@lru_cache(maxsize=1)
def get_builtin_tools() -> tuple:
    """Return descriptors for the in-process tools (cached)."""
    return tuple(
        make_descriptor(name, description, schema, _wrap_function(func))
        for name, (func, description, schema) in _BUILTIN_TOOLS.items()
    )


def _server_params(cmd: str) -> StdioServerParameters | None:
    cmd_parts = cmd.split()
    if len(cmd_parts) < 2:
        logger.warning("Invalid MCP command format: %s", cmd)
        return None
    return StdioServerParameters(command=cmd_parts[0], args=cmd_parts[1:], env=dict(os.environ))


def _mcp_handler(params: StdioServerParameters, tool_name: str) -> Callable[[Dict[str, Any]], Any]:
    async def handler(arguments: Dict[str, Any]) -> ToolResponse:
        async with stdio_client(params) as (read, write):
            async with ClientSession(read, write) as session:
                await session.initialize()
                result = await session.call_tool(tool_name, arguments)
        text = "\n".join(
            getattr(item, "text", "") or "" for item in result.content if getattr(item, "type", "") == "text"
        )
        return ToolResponse(content=text, is_error=bool(result.isError))

    return handler


async def load_mcp_tools(commands: List[str]) -> List[ToolDescriptor]:
    """List the tools of every configured MCP server; unreachable servers are skipped."""
    tools: List[ToolDescriptor] = []
    for cmd in commands:
        params = _server_params(cmd)
        if params is None:
            continue
        try:
            async with stdio_client(params) as (read, write):
                async with ClientSession(read, write) as session:
                    await session.initialize()
                    listed = await session.list_tools()
        except (OSError, ConnectionError, TimeoutError) as e:
            logger.warning("Failed to connect to MCP server '%s': %s", cmd, e)
            continue
        for info in listed.tools:
            tools.append(
                make_descriptor(
                    info.name,
                    info.description or "",
                    info.inputSchema or {},
                    _mcp_handler(params, info.name),
                )
            )
        logger.info("Loaded %d tool(s) from MCP server '%s'", len(listed.tools), cmd)
    return tools


def build_catalog(extra_tools: List[ToolDescriptor] | None = None) -> CapabilityCatalog:
    catalog = CapabilityCatalog(get_builtin_tools())
    for tool in extra_tools or []:
        catalog.register(tool)
    return catalog
