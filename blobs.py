"""Local object URLs for captured audio."""

from __future__ import annotations

import io
import logging
import tempfile
import wave
from pathlib import Path

from models import AudioBlob

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/ogg": "ogg",
}


def extension_for(media_type: str) -> str:
    return _EXTENSIONS.get(media_type.split(";")[0].strip().lower(), "bin")


def to_playable(blob: AudioBlob, sample_width: int = 2) -> AudioBlob:
    """Wrap raw PCM in a WAV container; other blobs are returned unchanged."""
    if not blob.is_raw_pcm:
        return blob
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(blob.channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(blob.sample_rate)
        wf.writeframes(blob.data)
    return AudioBlob(
        data=buf.getvalue(),
        media_type="audio/wav",
        sample_rate=blob.sample_rate,
        channels=blob.channels,
    )


class BlobUrlStore:
    """Backs ``file://`` URLs with temp files until they are revoked."""

    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory or Path(tempfile.gettempdir()) / "beatpad"
        self._directory.mkdir(parents=True, exist_ok=True)
        self._paths: dict[str, Path] = {}

    def create_object_url(self, blob: AudioBlob) -> str:
        playable = to_playable(blob)
        with tempfile.NamedTemporaryFile(
            dir=self._directory,
            prefix="capture-",
            suffix=f".{extension_for(playable.media_type)}",
            delete=False,
        ) as handle:
            handle.write(playable.data)
            path = Path(handle.name)
        url = path.as_uri()
        self._paths[url] = path
        return url

    def revoke_object_url(self, url: str) -> None:
        path = self._paths.pop(url, None)
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove %s", path, exc_info=True)

    def revoke_all(self) -> None:
        for url in list(self._paths):
            self.revoke_object_url(url)
