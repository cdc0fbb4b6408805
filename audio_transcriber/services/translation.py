from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from audio_transcriber.integrations.openrouter import CompletionRequestError
from audio_transcriber.services.language_detection import LanguageDetector
from audio_transcriber.services.transcription import CompletionClient

logger = logging.getLogger(__name__)

TARGET_LANGUAGE = "English"
UNKNOWN_LANGUAGE = "Unknown"


@dataclass(frozen=True)
class TranslationResult:
    """Detected language label plus the English rendering, if one was needed."""

    language: str
    translation: str | None = None


UNKNOWN_RESULT = TranslationResult(language=UNKNOWN_LANGUAGE)


def extract_json_object(raw: str) -> dict[str, Any] | None:
    """Return the first JSON object embedded in free text, if any."""
    text = _strip_json_fences(raw.strip())
    decoder = json.JSONDecoder()
    position = text.find("{")
    while position != -1:
        try:
            parsed, _ = decoder.raw_decode(text, position)
        except (json.JSONDecodeError, RecursionError):
            position = text.find("{", position + 1)
            continue
        if isinstance(parsed, dict):
            return parsed
        position = text.find("{", position + 1)
    return None


def _strip_json_fences(value: str) -> str:
    if value.startswith("```"):
        if value.lower().startswith("```json"):
            value = value[7:]
        else:
            value = value[3:]
        if value.endswith("```"):
            value = value[:-3]
    return value.strip()


class TranslationService:
    """Detect the transcript's language and translate it to English when needed.

    Translation is an enrichment: every failure degrades to ``UNKNOWN_RESULT``
    and the caller still gets its transcript.
    """

    def __init__(
        self,
        client: CompletionClient,
        *,
        model: str,
        source_language_label: str,
        detector: LanguageDetector | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._source_label = source_language_label
        self._detector = detector or LanguageDetector()

    async def resolve(self, text: str) -> TranslationResult:
        if not text or not text.strip():
            return UNKNOWN_RESULT

        logger.info("Starting translation process text_length=%d", len(text))
        try:
            raw = await self._client.complete(self._structured_payload(text))
        except CompletionRequestError as exc:
            logger.warning(
                "Translation API failed status=%s: %s", exc.status_code, exc.detail
            )
            return UNKNOWN_RESULT
        except Exception:
            logger.exception("Translation error")
            return UNKNOWN_RESULT

        if not raw:
            logger.warning("Translation API returned no content; using fallback")
            return UNKNOWN_RESULT

        try:
            structured = self._parse_structured(raw)
        except Exception:
            logger.exception("Structured translation parsing failed")
            structured = None
        if structured is not None:
            logger.info(
                "Translation successful language=%s translated=%s original_length=%d",
                structured.language,
                structured.translation is not None,
                len(text),
            )
            return structured

        logger.info("Structured translation unparseable; applying fallback heuristics")
        if self._detector.looks_like_english(text):
            return TranslationResult(language=TARGET_LANGUAGE)
        return await self._plain_translate(text)

    def _parse_structured(self, raw: str) -> TranslationResult | None:
        parsed = extract_json_object(raw)
        if parsed is None:
            return None

        is_english = parsed.get("isEnglish")
        if not isinstance(is_english, bool):
            return None

        language = parsed.get("language")
        if not isinstance(language, str) or not language.strip():
            language = TARGET_LANGUAGE if is_english else self._source_label

        if is_english:
            return TranslationResult(language=language.strip())

        translation = parsed.get("translation")
        if not isinstance(translation, str) or not translation.strip():
            return None
        return TranslationResult(language=language.strip(), translation=translation.strip())

    async def _plain_translate(self, text: str) -> TranslationResult:
        try:
            raw = await self._client.complete(self._plain_payload(text))
        except CompletionRequestError as exc:
            logger.warning(
                "Fallback translation failed status=%s: %s", exc.status_code, exc.detail
            )
            return UNKNOWN_RESULT
        except Exception:
            logger.exception("Fallback translation error")
            return UNKNOWN_RESULT

        if not raw or not raw.strip():
            return UNKNOWN_RESULT

        translation = raw.strip()
        logger.info(
            "Fallback translation successful original_length=%d translation_length=%d",
            len(text),
            len(translation),
        )
        return TranslationResult(language=self._source_label, translation=translation)

    def _structured_payload(self, text: str) -> dict[str, Any]:
        source = self._source_label
        prompt = (
            f"You are a professional translator with deep cultural and linguistic knowledge "
            f"of {source}.\n\n"
            f"TASK: Identify the language of the text below and, unless it is already "
            f"{TARGET_LANGUAGE}, translate it into natural, fluent {TARGET_LANGUAGE}.\n\n"
            "INSTRUCTIONS:\n"
            "- Convey the meaning and intent rather than a literal word-for-word rendering.\n"
            "- Keep the original tone, style and cultural context.\n"
            f"- If the text is already {TARGET_LANGUAGE}, set isEnglish to true and "
            "translation to null.\n\n"
            "Respond in this exact JSON format:\n"
            "{\n"
            f'  "language": "{source}",\n'
            '  "isEnglish": false,\n'
            f'  "translation": "your natural {TARGET_LANGUAGE} translation here"\n'
            "}\n\n"
            f'Text to translate: "{text}"'
        )
        return {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.2,
            "max_tokens": 8000,
        }

    def _plain_payload(self, text: str) -> dict[str, Any]:
        source = self._source_label
        prompt = (
            f"You are a professional {source} to {TARGET_LANGUAGE} translator.\n\n"
            f"Translate this text into natural, fluent {TARGET_LANGUAGE}. Focus on meaning "
            "and intent, keep the tone, and make it sound like something a native speaker "
            "would say.\n\n"
            f'Text: "{text}"\n\n'
            f"Provide ONLY the {TARGET_LANGUAGE} translation (no explanations, no additional text):"
        )
        return {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.2,
            "max_tokens": 8000,
        }
