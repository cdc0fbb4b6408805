from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "audio/mpeg"
_GENERIC_CONTENT_TYPES = {"", "application/octet-stream"}
_CHUNK_SIZE = 1024 * 1024

_EXTENSION_MIME_TYPES: dict[str, str] = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".webm": "audio/webm",
}

_FORMAT_TOKENS: dict[str, str] = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/x-m4a": "m4a",
    "audio/ogg": "ogg",
    "audio/webm": "webm",
    "video/webm": "webm",
}


class UploadRejectedError(ValueError):
    """Raised when an uploaded file cannot be accepted."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AudioUpload(Protocol):
    filename: str | None
    content_type: str | None

    async def read(self, size: int = -1) -> bytes: ...


@dataclass(frozen=True)
class StagedUpload:
    """Uploaded audio written to a temporary file for the lifetime of one request."""

    path: Path
    filename: str | None
    mime_type: str
    size: int

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


def _normalize_content_type(content_type: str | None) -> str:
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def resolve_mime_type(content_type: str | None, filename: str | None) -> str:
    """Return the declared MIME type, or infer it from the file extension."""
    declared = _normalize_content_type(content_type)
    if declared not in _GENERIC_CONTENT_TYPES:
        return declared
    extension = os.path.splitext(filename or "")[1].lower()
    return _EXTENSION_MIME_TYPES.get(extension, DEFAULT_MIME_TYPE)


def audio_format_token(mime_type: str) -> str:
    """Map a MIME type to the short format name the completion API expects."""
    return _FORMAT_TOKENS.get(_normalize_content_type(mime_type), "mp3")


def _is_media_type(content_type: str) -> bool:
    return content_type.startswith(("audio/", "video/"))


@asynccontextmanager
async def stage_upload(
    upload: AudioUpload,
    *,
    max_bytes: int,
    tmp_dir: str | None = None,
) -> AsyncIterator[StagedUpload]:
    """Stream an upload into a temporary file that is removed on exit.

    The framework may already have spooled the body to its own temporary file.
    This second copy lives under ``tmp_dir`` (``UPLOAD_TMP_DIR``) and lets the
    size ceiling be enforced chunk by chunk while the bytes are copied.
    """
    declared = _normalize_content_type(upload.content_type)
    if declared not in _GENERIC_CONTENT_TYPES and not _is_media_type(declared):
        raise UploadRejectedError(
            "Please upload an audio file (e.g., .mp3, .wav, .m4a).",
            status_code=415,
        )

    declared_size = getattr(upload, "size", None)
    if isinstance(declared_size, int) and declared_size > max_bytes:
        raise UploadRejectedError(_too_large_message(max_bytes), status_code=413)

    suffix = os.path.splitext(upload.filename or "")[1].lower()
    handle = tempfile.NamedTemporaryFile(
        prefix="audio_upload_", suffix=suffix, dir=tmp_dir, delete=False
    )
    path = Path(handle.name)
    try:
        total_bytes = 0
        with handle:
            while True:
                chunk = await upload.read(_CHUNK_SIZE)
                if not chunk:
                    break
                total_bytes += len(chunk)
                if total_bytes > max_bytes:
                    raise UploadRejectedError(_too_large_message(max_bytes), status_code=413)
                handle.write(chunk)

        if total_bytes == 0:
            raise UploadRejectedError("Uploaded audio payload is empty.")

        staged = StagedUpload(
            path=path,
            filename=upload.filename,
            mime_type=resolve_mime_type(upload.content_type, upload.filename),
            size=total_bytes,
        )
        logger.info(
            "Staged upload filename=%s mime_type=%s size=%d",
            staged.filename,
            staged.mime_type,
            staged.size,
        )
        yield staged
    finally:
        _remove_quietly(path)


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Temporary upload cleanup failed (non-critical) path=%s: %s", path, exc)


def _too_large_message(max_bytes: int) -> str:
    limit_mb = max_bytes / (1024 * 1024)
    return f"Audio file exceeds the {limit_mb:g} MB upload limit."
