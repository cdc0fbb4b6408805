from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from audio_transcriber.integrations.openrouter import CompletionRequestError
from audio_transcriber.services.uploads import audio_format_token

logger = logging.getLogger(__name__)

Payload = dict[str, Any]


class CompletionClient(Protocol):
    async def complete(self, payload: Payload) -> str | None: ...


@dataclass(frozen=True)
class EncodedAudio:
    data: str
    mime_type: str
    format: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class AttemptFailure:
    variant: int
    error: str
    status: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"format": self.variant, "status": self.status, "error": self.error}


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    variant: int


class TranscriptionFailedError(RuntimeError):
    """Raised when no payload variant produced a transcript."""

    all_formats_failed = True

    def __init__(
        self,
        last_failure: AttemptFailure | None,
        attempts: Sequence[AttemptFailure] = (),
    ) -> None:
        super().__init__("All API request formats failed")
        self.last_failure = last_failure
        self.attempts = list(attempts)

    @property
    def status_code(self) -> int | None:
        return self.last_failure.status if self.last_failure else None


def encode_audio(audio: bytes, mime_type: str) -> EncodedAudio:
    return EncodedAudio(
        data=base64.b64encode(audio).decode("ascii"),
        mime_type=mime_type,
        format=audio_format_token(mime_type),
    )


def build_input_audio_payload(audio: EncodedAudio, *, model: str) -> Payload:
    return {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {
                        "type": "text",
                        "text": (
                            "Please transcribe this entire audio file completely and accurately. "
                            "Make sure to transcribe every word from beginning to end. "
                            "Return only the complete transcribed text with no truncation."
                        ),
                    },
                    {
                        "type": "input_audio",
                        "input_audio": {"data": audio.data, "format": audio.format},
                    },
                ],
            }
        ],
        "temperature": 0.1,
        "max_tokens": 8000,
    }


def build_audio_block_payload(audio: EncodedAudio, *, model: str) -> Payload:
    return {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {
                        "type": "text",
                        "text": (
                            "Transcribe this entire audio file completely from start to finish "
                            "with no truncation. Include every word spoken."
                        ),
                    },
                    {
                        "type": "audio",
                        "audio": {"data": audio.data, "format": audio.format},
                    },
                ],
            }
        ],
    }


def build_data_url_payload(audio: EncodedAudio, *, model: str) -> Payload:
    return {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {
                        "type": "text",
                        "text": (
                            "Transcribe this entire audio file completely with no truncation. "
                            "Include all spoken words from beginning to end."
                        ),
                    },
                    {"type": "audio", "data": audio.data_url},
                ],
            }
        ],
    }


PAYLOAD_BUILDERS: tuple[Callable[..., Payload], ...] = (
    build_input_audio_payload,
    build_audio_block_payload,
    build_data_url_payload,
)


async def attempt_in_order(
    variants: Sequence[Callable[[], Payload]],
    send: Callable[[Payload], Awaitable[str | None]],
    *,
    deadline: float | None = None,
) -> TranscriptionResult:
    """Try each payload variant in turn; the first non-empty text wins.

    ``deadline`` is an absolute ``loop.time()`` value bounding the whole sequence.
    """
    loop = asyncio.get_running_loop()
    attempts: list[AttemptFailure] = []
    total = len(variants)

    for index, build in enumerate(variants, start=1):
        remaining = None if deadline is None else deadline - loop.time()
        if remaining is not None and remaining <= 0:
            failure = AttemptFailure(variant=index, error="Transcription deadline exceeded.")
            attempts.append(failure)
            logger.warning("Skipping format %d/%d: deadline exceeded", index, total)
            continue

        logger.info("Trying API request format %d/%d", index, total)
        try:
            text = await asyncio.wait_for(send(build()), timeout=remaining)
        except CompletionRequestError as exc:
            failure = AttemptFailure(variant=index, error=exc.detail, status=exc.status_code)
        except asyncio.TimeoutError:
            failure = AttemptFailure(variant=index, error="Transcription deadline exceeded.")
        else:
            if text and text.strip():
                logger.info(
                    "Transcription successful format=%d length=%d", index, len(text)
                )
                return TranscriptionResult(text=text, variant=index)
            failure = AttemptFailure(variant=index, error="Empty transcription in API response.")

        attempts.append(failure)
        logger.warning(
            "Format %d failed status=%s error=%s", index, failure.status, failure.error
        )

    last_failure = attempts[-1] if attempts else None
    logger.error("All API request formats failed: %s", last_failure)
    raise TranscriptionFailedError(last_failure=last_failure, attempts=attempts)


class TranscriptionService:
    """Transcribe audio through the completion API using ordered payload fallbacks."""

    def __init__(
        self,
        client: CompletionClient,
        *,
        model: str,
        deadline_seconds: float | None = None,
        builders: Sequence[Callable[..., Payload]] = PAYLOAD_BUILDERS,
    ) -> None:
        self._client = client
        self._model = model
        self._deadline_seconds = deadline_seconds
        self._builders = tuple(builders)

    async def transcribe(self, audio: bytes, mime_type: str) -> TranscriptionResult:
        if not audio:
            raise ValueError("Audio payload is empty.")

        encoded = encode_audio(audio, mime_type)
        logger.info(
            "Preparing API request mime_type=%s format=%s audio_bytes=%d base64_length=%d",
            encoded.mime_type,
            encoded.format,
            len(audio),
            len(encoded.data),
        )

        variants = [self._bind(builder, encoded) for builder in self._builders]
        deadline = None
        if self._deadline_seconds is not None:
            deadline = asyncio.get_running_loop().time() + self._deadline_seconds
        return await attempt_in_order(variants, self._client.complete, deadline=deadline)

    def _bind(self, builder: Callable[..., Payload], audio: EncodedAudio) -> Callable[[], Payload]:
        def build() -> Payload:
            return builder(audio, model=self._model)

        return build
