"""Voice memo and beat libraries stored through the backend client."""

from __future__ import annotations

import logging
import mimetypes
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from backend import BackendClient
from blobs import extension_for, to_playable
from errors import (
    BEAT_ADDED,
    BEAT_ATTACHED,
    BEAT_DELETED,
    BEAT_DETACHED,
    DEFAULT_LANGUAGE,
    EMPTY_TITLE,
    INVALID_AUDIO,
    RECORDING_DELETED,
    RECORDING_RENAMED,
    RECORDING_SAVED,
    UPSTREAM_FAILURE,
    UpstreamFailureError,
    message_for,
)
from interfaces import ErrorCallback, NoticeCallback
from models import AudioBlob, Track

logger = logging.getLogger(__name__)

AUDIO_BUCKET = "audio-files"
MAX_BEAT_BYTES = 10 * 1024 * 1024

_RECORDING_TITLES = {
    "en": "Recording of {date} at {time}",
    "fr": "Enregistrement du {date} à {time}",
}


class _Library:
    def __init__(
        self,
        client: BackendClient,
        bucket: str = AUDIO_BUCKET,
        language: str = DEFAULT_LANGUAGE,
        on_error: Optional[ErrorCallback] = None,
        on_notice: Optional[NoticeCallback] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._language = language
        self._on_error = on_error
        self._on_notice = on_notice
        self._clock = clock

    def _emit_error(self, code: str, message: str) -> None:
        logger.warning("%s: %s", code, message)
        if self._on_error:
            self._on_error(code, message)

    def _emit_notice(self, code: str) -> None:
        if self._on_notice:
            self._on_notice(message_for(code, self._language))

    def _timestamp_ms(self) -> int:
        return int(self._clock().timestamp() * 1000)


class VoiceMemoLibrary(_Library):
    TABLE = "voice_recordings"

    def list_for_note(self, note_id: str) -> list[Track]:
        try:
            rows = self._client.select(self.TABLE, {"note_id": note_id}, order="created_at")
        except UpstreamFailureError as exc:
            self._emit_error(UPSTREAM_FAILURE, exc.detail)
            return []
        return [Track.from_row(row) for row in rows]

    def save_capture(self, blob: AudioBlob, note_id: str, user_id: str) -> Track | None:
        """Upload a finalized capture and record it against ``note_id``."""
        if not note_id or not user_id:
            self._emit_error(UPSTREAM_FAILURE, "a note and a signed-in user are required")
            return None
        playable = to_playable(blob)
        path = f"{user_id}/recordings/{self._timestamp_ms()}.{extension_for(playable.media_type)}"
        now = self._clock()
        template = _RECORDING_TITLES.get(self._language, _RECORDING_TITLES["en"])
        title = template.format(date=now.strftime("%d/%m/%Y"), time=now.strftime("%H:%M:%S"))
        try:
            url = self._client.upload(self._bucket, path, playable.data, playable.media_type)
            row = self._client.insert(
                self.TABLE,
                {"title": title, "audio_url": url, "note_id": note_id, "user_id": user_id},
            )
        except UpstreamFailureError as exc:
            self._emit_error(UPSTREAM_FAILURE, exc.detail)
            return None
        self._emit_notice(RECORDING_SAVED)
        return Track.from_row(row or {"title": title, "audio_url": url, "note_id": note_id})

    def rename(self, recording_id: str, title: str) -> bool:
        title = title.strip()
        if not title:
            self._emit_error(EMPTY_TITLE, "title is blank")
            return False
        try:
            self._client.update(self.TABLE, {"id": recording_id}, {"title": title})
        except UpstreamFailureError as exc:
            self._emit_error(UPSTREAM_FAILURE, exc.detail)
            return False
        self._emit_notice(RECORDING_RENAMED)
        return True

    def delete(self, recording_id: str) -> bool:
        # TODO: remove the stored audio object as well once the bucket path is kept on the row.
        try:
            self._client.delete(self.TABLE, {"id": recording_id})
        except UpstreamFailureError as exc:
            self._emit_error(UPSTREAM_FAILURE, exc.detail)
            return False
        self._emit_notice(RECORDING_DELETED)
        return True


class BeatLibrary(_Library):
    TABLE = "beats"
    LINK_TABLE = "note_beats"

    def list_for_user(self, user_id: str, search: str = "") -> list[Track]:
        try:
            rows = self._client.select(self.TABLE, {"user_id": user_id}, order="created_at")
        except UpstreamFailureError as exc:
            self._emit_error(UPSTREAM_FAILURE, exc.detail)
            return []
        beats = [Track.from_row(row) for row in rows]
        needle = search.strip().lower()
        if needle:
            beats = [beat for beat in beats if needle in beat.title.lower()]
        return beats

    def get(self, beat_id: str) -> Track | None:
        try:
            rows = self._client.select(self.TABLE, {"id": beat_id})
        except UpstreamFailureError as exc:
            self._emit_error(UPSTREAM_FAILURE, exc.detail)
            return None
        return Track.from_row(rows[0]) if rows else None

    def upload(self, user_id: str, path: Path, title: str | None = None) -> Track | None:
        media_type, _ = mimetypes.guess_type(path.name)
        if not media_type or not media_type.startswith("audio/"):
            self._emit_error(INVALID_AUDIO, f"{path.name} is not an audio file")
            return None
        try:
            data = path.read_bytes()
        except OSError as exc:
            self._emit_error(INVALID_AUDIO, str(exc))
            return None
        if len(data) > MAX_BEAT_BYTES:
            self._emit_error(INVALID_AUDIO, f"{path.name} is larger than 10 MB")
            return None

        title = (title or "").strip() or path.stem
        suffix = path.suffix.lstrip(".") or extension_for(media_type)
        storage_path = f"{user_id}/beats/{self._timestamp_ms()}.{suffix}"
        try:
            url = self._client.upload(self._bucket, storage_path, data, media_type)
            row = self._client.insert(
                self.TABLE, {"title": title, "audio_url": url, "user_id": user_id}
            )
        except UpstreamFailureError as exc:
            self._emit_error(UPSTREAM_FAILURE, exc.detail)
            return None
        self._emit_notice(BEAT_ADDED)
        return Track.from_row(row or {"title": title, "audio_url": url, "user_id": user_id})

    def delete(self, beat_id: str) -> bool:
        return self._call(BEAT_DELETED, self._client.delete, self.TABLE, {"id": beat_id})

    def attach_to_note(self, note_id: str, beat_id: str) -> bool:
        row = {"note_id": note_id, "beat_id": beat_id, "is_primary": True}
        return self._call(BEAT_ATTACHED, self._client.upsert, self.LINK_TABLE, row)

    def detach_from_note(self, note_id: str, beat_id: str) -> bool:
        filters = {"note_id": note_id, "beat_id": beat_id}
        return self._call(BEAT_DETACHED, self._client.delete, self.LINK_TABLE, filters)

    def _call(self, notice: str, method: Callable[..., object], *args: object) -> bool:
        try:
            method(*args)
        except UpstreamFailureError as exc:
            self._emit_error(UPSTREAM_FAILURE, exc.detail)
            return False
        self._emit_notice(notice)
        return True
