"""Transcribe a local audio file with the same pipeline the web service uses."""

from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
from pathlib import Path
from typing import Sequence

from audio_transcriber.core.config import get_settings
from audio_transcriber.integrations.openrouter import OpenRouterClient
from audio_transcriber.services.transcription import (
    TranscriptionFailedError,
    TranscriptionService,
)
from audio_transcriber.services.translation import TranslationService
from audio_transcriber.services.uploads import resolve_mime_type


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audio-transcriber-file",
        description="Transcribe a local audio file and translate it to English when needed.",
    )
    parser.add_argument("path", type=Path, help="Audio file to transcribe.")
    parser.add_argument(
        "--mime-type",
        default=None,
        help="Override the MIME type (default: guessed from the file extension).",
    )
    parser.add_argument(
        "--no-translate",
        action="store_true",
        help="Skip language detection and translation.",
    )
    parser.add_argument(
        "--format",
        choices=("json", "text"),
        default="json",
        help="Output format (default: json).",
    )
    return parser


def render_text(envelope: dict[str, str | None]) -> str:
    lines = [envelope["transcription"] or ""]
    if envelope.get("language"):
        lines.append("")
        lines.append(f"Language: {envelope['language']}")
    if envelope.get("translation"):
        lines.append("")
        lines.append("Translation:")
        lines.append(envelope["translation"])
    return "\n".join(lines)


async def _run(
    path: Path,
    mime_type: str | None,
    translate: bool,
    format_name: str,
) -> int:
    if not path.is_file():
        print(f"error: {path} does not exist")
        return 2

    settings = get_settings()
    if not settings.is_api_key_configured:
        print("error: OPENAI_API_KEY is not configured")
        return 2

    resolved_mime = mime_type or resolve_mime_type(mimetypes.guess_type(path.name)[0], path.name)
    client = OpenRouterClient(settings)
    try:
        transcriber = TranscriptionService(
            client,
            model=settings.transcription_model,
            deadline_seconds=settings.transcription_deadline_seconds,
        )
        try:
            result = await transcriber.transcribe(path.read_bytes(), resolved_mime)
        except TranscriptionFailedError as exc:
            details = exc.last_failure.as_dict() if exc.last_failure else {}
            print(json.dumps({"error": str(exc), "details": details}, ensure_ascii=False))
            return 1

        envelope: dict[str, str | None] = {
            "transcription": result.text,
            "language": None,
            "translation": None,
        }
        if translate:
            translator = TranslationService(
                client,
                model=settings.translation_model,
                source_language_label=settings.source_language_label,
            )
            translation = await translator.resolve(result.text)
            envelope["language"] = translation.language
            envelope["translation"] = translation.translation
    finally:
        await client.aclose()

    if format_name == "text":
        print(render_text(envelope))
    else:
        print(json.dumps(envelope, ensure_ascii=False, indent=2))
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    exit_code = asyncio.run(
        _run(args.path, args.mime_type, not args.no_translate, args.format)
    )
    raise SystemExit(exit_code)


if __name__ == "__main__":  # pragma: no cover - script entry point
    main()
