from __future__ import annotations

import logging
from pathlib import Path

import pytest

from audio_transcriber.services import uploads as uploads_module
from audio_transcriber.services.uploads import (
    UploadRejectedError,
    audio_format_token,
    resolve_mime_type,
    stage_upload,
)


class FakeUpload:
    def __init__(self, payload: bytes, *, filename: str | None, content_type: str | None) -> None:
        self._payload = payload
        self._offset = 0
        self.filename = filename
        self.content_type = content_type
        self.reads = 0

    async def read(self, size: int = -1) -> bytes:
        self.reads += 1
        if size < 0:
            size = len(self._payload) - self._offset
        chunk = self._payload[self._offset : self._offset + size]
        self._offset += len(chunk)
        return chunk


@pytest.mark.parametrize(
    ("content_type", "filename", "expected"),
    [
        ("audio/wav", "clip.mp3", "audio/wav"),
        ("audio/ogg; codecs=opus", "clip", "audio/ogg"),
        (None, "clip.mp3", "audio/mpeg"),
        (None, "clip.WAV", "audio/wav"),
        (None, "clip.m4a", "audio/mp4"),
        ("", "clip.ogg", "audio/ogg"),
        ("application/octet-stream", "clip.m4a", "audio/mp4"),
        (None, "clip", "audio/mpeg"),
        (None, None, "audio/mpeg"),
        (None, "notes.flac", "audio/mpeg"),
    ],
)
def test_resolve_mime_type(content_type: str | None, filename: str | None, expected: str) -> None:
    assert resolve_mime_type(content_type, filename) == expected


@pytest.mark.parametrize(
    ("mime_type", "expected"),
    [
        ("audio/mpeg", "mp3"),
        ("audio/mp3", "mp3"),
        ("audio/wav", "wav"),
        ("audio/mp4", "m4a"),
        ("audio/m4a", "m4a"),
        ("audio/ogg", "ogg"),
        ("audio/webm", "webm"),
        ("audio/flac", "mp3"),
    ],
)
def test_audio_format_token(mime_type: str, expected: str) -> None:
    assert audio_format_token(mime_type) == expected


@pytest.mark.asyncio
async def test_stage_upload_writes_and_removes_temp_file(tmp_path: Path) -> None:
    upload = FakeUpload(b"\x00\x01\x02", filename="voice.wav", content_type=None)

    async with stage_upload(upload, max_bytes=1024, tmp_dir=str(tmp_path)) as staged:
        assert staged.path.exists()
        assert staged.read_bytes() == b"\x00\x01\x02"
        assert staged.mime_type == "audio/wav"
        assert staged.size == 3
        assert staged.path.suffix == ".wav"

    assert not staged.path.exists()
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_stage_upload_removes_temp_file_when_body_raises(tmp_path: Path) -> None:
    upload = FakeUpload(b"abc", filename="voice.mp3", content_type="audio/mpeg")

    with pytest.raises(RuntimeError):
        async with stage_upload(upload, max_bytes=1024, tmp_dir=str(tmp_path)):
            raise RuntimeError("boom")

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_stage_upload_rejects_oversized_payload(tmp_path: Path) -> None:
    upload = FakeUpload(b"x" * 11, filename="voice.mp3", content_type="audio/mpeg")

    with pytest.raises(UploadRejectedError) as exc:
        async with stage_upload(upload, max_bytes=10, tmp_dir=str(tmp_path)):
            pytest.fail("oversized upload should not be staged")

    assert exc.value.status_code == 413
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_stage_upload_rejects_declared_size_before_reading(tmp_path: Path) -> None:
    upload = FakeUpload(b"x", filename="voice.mp3", content_type="audio/mpeg")
    upload.size = 2048  # type: ignore[attr-defined]

    with pytest.raises(UploadRejectedError) as exc:
        async with stage_upload(upload, max_bytes=1024, tmp_dir=str(tmp_path)):
            pass

    assert exc.value.status_code == 413
    assert upload.reads == 0


@pytest.mark.asyncio
async def test_stage_upload_rejects_empty_payload(tmp_path: Path) -> None:
    upload = FakeUpload(b"", filename="voice.mp3", content_type="audio/mpeg")

    with pytest.raises(UploadRejectedError) as exc:
        async with stage_upload(upload, max_bytes=1024, tmp_dir=str(tmp_path)):
            pass

    assert exc.value.status_code == 400
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_stage_upload_rejects_non_media_content_type(tmp_path: Path) -> None:
    upload = FakeUpload(b"hello", filename="notes.txt", content_type="text/plain")

    with pytest.raises(UploadRejectedError) as exc:
        async with stage_upload(upload, max_bytes=1024, tmp_dir=str(tmp_path)):
            pass

    assert exc.value.status_code == 415


@pytest.mark.asyncio
async def test_cleanup_failure_is_logged_not_raised(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def failing_unlink(self: Path, missing_ok: bool = False) -> None:
        raise PermissionError("locked")

    upload = FakeUpload(b"abc", filename="voice.mp3", content_type="audio/mpeg")
    caplog.set_level(logging.WARNING, logger=uploads_module.__name__)

    async with stage_upload(upload, max_bytes=1024, tmp_dir=str(tmp_path)) as staged:
        monkeypatch.setattr(Path, "unlink", failing_unlink)

    monkeypatch.undo()
    assert "cleanup failed" in caplog.text
    staged.path.unlink()
