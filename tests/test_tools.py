import base64
import json

import pytest

from toolchat.agent import tools


def test_crypto_hash_known_digests() -> None:
    assert json.loads(tools.crypto_hash("abc"))["hash"] == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )
    result = json.loads(tools.crypto_hash("abc", "md5"))
    assert result == {"algorithm": "md5", "hash": "900150983cd24fb0d6963f7d28e17f72", "inputLength": 3}


def test_crypto_hash_rejects_unknown_algorithm() -> None:
    with pytest.raises(ValueError):
        tools.crypto_hash("abc", "crc32")


def test_base64_round_trip_and_invalid_input() -> None:
    encoded = tools.crypto_base64_encode("héllo")
    assert tools.crypto_base64_decode(encoded) == "héllo"
    with pytest.raises(ValueError):
        tools.crypto_base64_decode("%%%")


def test_hmac_is_keyed() -> None:
    first = json.loads(tools.crypto_hmac("msg", "k1"))["hmac"]
    second = json.loads(tools.crypto_hmac("msg", "k2"))["hmac"]
    assert first != second


def test_slugify_and_word_count() -> None:
    assert tools.text_slugify("Hello, World! Ünïcode") == "hello-world-unicode"
    assert tools.text_slugify("a b", separator="_") == "a_b"
    counts = json.loads(tools.text_word_count("one two\nthree"))
    assert counts["words"] == 3
    assert counts["lines"] == 2


def test_json_format_and_validate() -> None:
    assert tools.json_format('{"b":1,"a":2}', indent=2, sort_keys=True) == '{\n  "a": 2,\n  "b": 1\n}'
    assert json.loads(tools.json_validate("{}")) == {"valid": True}
    invalid = json.loads(tools.json_validate('{"a": }'))
    assert invalid["valid"] is False
    assert invalid["line"] == 1


def test_archive_create_then_list() -> None:
    entry = base64.b64encode(b"hello").decode()
    archive = tools.archive_create([{"name": "a.txt", "content": entry}, {"name": "b.txt", "content": entry}])
    listing = json.loads(tools.archive_list(archive))
    assert listing["count"] == 2
    assert [e["name"] for e in listing["entries"]] == ["a.txt", "b.txt"]


def test_archive_errors() -> None:
    with pytest.raises(ValueError):
        tools.archive_create([])
    with pytest.raises(ValueError):
        tools.archive_list(base64.b64encode(b"not a zip").decode())


def test_builtin_descriptors_wrap_functions() -> None:
    by_name = {t.name: t for t in tools.get_builtin_tools()}
    response = by_name["agent_tools_text_slugify"].handler({"text": "Big News"})
    assert response.content == "big-news"
    assert response.is_error is False
    assert by_name["agent_tools_archive_create"].category == "archive"
