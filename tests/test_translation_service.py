from __future__ import annotations

import json

import pytest

from audio_transcriber.integrations.openrouter import CompletionRequestError
from audio_transcriber.services.language_detection import LanguageDetector
from audio_transcriber.services.translation import (
    TranslationResult,
    TranslationService,
    extract_json_object,
)
from tests.stubs import ScriptedCompletionClient

TWI_TEXT = "Me din de Kofi, na mefiri Kumasi. Ɛte sɛn?"


def _service(client: ScriptedCompletionClient) -> TranslationService:
    return TranslationService(client, model="google/gemini-2.5-pro", source_language_label="Twi (Akan)")


@pytest.mark.asyncio
async def test_structured_answer_for_english_text_has_no_translation() -> None:
    client = ScriptedCompletionClient(
        [json.dumps({"language": "English", "isEnglish": True, "translation": None})]
    )

    result = await _service(client).resolve("Hello there, how are you?")

    assert result == TranslationResult(language="English", translation=None)
    assert len(client.payloads) == 1
    assert client.payloads[0]["temperature"] == 0.2


@pytest.mark.asyncio
async def test_structured_translation_is_returned_verbatim() -> None:
    reply = (
        "Here is the result:\n"
        '{"language": "Twi (Akan)", "isEnglish": false, '
        '"translation": "My name is Kofi and I am from Kumasi. How are you?"}\n'
        "Let me know if you need anything else."
    )
    client = ScriptedCompletionClient([reply])

    result = await _service(client).resolve(TWI_TEXT)

    assert result.language == "Twi (Akan)"
    assert result.translation == "My name is Kofi and I am from Kumasi. How are you?"
    assert TWI_TEXT in client.payloads[0]["messages"][0]["content"]


@pytest.mark.asyncio
async def test_structured_translation_tolerates_braces_inside_strings() -> None:
    reply = (
        "```json\n"
        '{"language": "Twi (Akan)", "isEnglish": false, "translation": "He said {hello} twice."}\n'
        "```"
    )
    client = ScriptedCompletionClient([reply])

    result = await _service(client).resolve(TWI_TEXT)

    assert result.translation == "He said {hello} twice."


@pytest.mark.asyncio
async def test_unparseable_answer_falls_back_to_plain_translation() -> None:
    client = ScriptedCompletionClient(
        ["Sorry, I cannot produce JSON.", "  My name is Kofi.  "]
    )

    result = await _service(client).resolve(TWI_TEXT)

    assert result == TranslationResult(language="Twi (Akan)", translation="My name is Kofi.")
    assert len(client.payloads) == 2
    assert "ONLY" in client.payloads[1]["messages"][0]["content"]


@pytest.mark.asyncio
async def test_unparseable_answer_for_latin_text_is_treated_as_english() -> None:
    client = ScriptedCompletionClient(["not json at all"])

    result = await _service(client).resolve("Good morning, everyone!")

    assert result == TranslationResult(language="English", translation=None)
    assert len(client.payloads) == 1


@pytest.mark.asyncio
async def test_missing_translation_for_foreign_text_uses_fallback() -> None:
    client = ScriptedCompletionClient(
        [json.dumps({"language": "Twi (Akan)", "isEnglish": False}), "My name is Kofi."]
    )

    result = await _service(client).resolve(TWI_TEXT)

    assert result.translation == "My name is Kofi."
    assert result.language == "Twi (Akan)"


@pytest.mark.asyncio
async def test_unreachable_api_degrades_to_unknown() -> None:
    client = ScriptedCompletionClient([CompletionRequestError("Connection error.")])

    result = await _service(client).resolve(TWI_TEXT)

    assert result == TranslationResult(language="Unknown", translation=None)


@pytest.mark.asyncio
async def test_upstream_error_status_degrades_to_unknown() -> None:
    client = ScriptedCompletionClient([CompletionRequestError("rate limited", status_code=429)])

    result = await _service(client).resolve(TWI_TEXT)

    assert result.language == "Unknown"
    assert result.translation is None


@pytest.mark.asyncio
async def test_failed_plain_fallback_degrades_to_unknown() -> None:
    client = ScriptedCompletionClient(["???", CompletionRequestError("server error", status_code=502)])

    result = await _service(client).resolve(TWI_TEXT)

    assert result == TranslationResult(language="Unknown", translation=None)


@pytest.mark.asyncio
async def test_unexpected_error_never_propagates() -> None:
    client = ScriptedCompletionClient([KeyError("choices")])

    result = await _service(client).resolve(TWI_TEXT)

    assert result.language == "Unknown"


@pytest.mark.asyncio
async def test_empty_structured_reply_degrades_to_unknown() -> None:
    client = ScriptedCompletionClient([None])

    result = await _service(client).resolve(TWI_TEXT)

    assert result == TranslationResult(language="Unknown", translation=None)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('{"a": 1}', {"a": 1}),
        ('prefix {"a": {"b": 2}} suffix {"c": 3}', {"a": {"b": 2}}),
        ('{broken {"a": 1}', {"a": 1}),
        ("no object here", None),
        ("[1, 2, 3]", None),
    ],
)
def test_extract_json_object(raw: str, expected: dict | None) -> None:
    assert extract_json_object(raw) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Thank you for listening to me today.", True),
        ('She said "hello" (twice) - really!', True),
        ("Ɛte sɛn?", False),
        ("我最近压力很大", False),
        ("Room 101", False),
        ("", False),
        ("?!", False),
    ],
)
def test_looks_like_english(text: str, expected: bool) -> None:
    assert LanguageDetector().looks_like_english(text) is expected


@pytest.mark.asyncio
async def test_deeply_nested_reply_falls_back_to_plain_translation() -> None:
    deeply_nested = '{"language": ' + "[" * 100000
    client = ScriptedCompletionClient([deeply_nested, "My name is Kofi."])

    result = await _service(client).resolve(TWI_TEXT)

    assert result == TranslationResult(language="Twi (Akan)", translation="My name is Kofi.")


def test_extract_json_object_ignores_unparseably_deep_nesting() -> None:
    assert extract_json_object('{"a": ' + "[" * 100000) is None
