"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

RAW_PCM_MEDIA_TYPE = "audio/L16"


class CaptureState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    STOPPED = "STOPPED"


class PlaybackState(str, Enum):
    IDLE = "IDLE"
    PLAYING = "PLAYING"
    PAUSED = "PAUSED"
    ENDED = "ENDED"


class DeviceEventKind(str, Enum):
    TIME_PROGRESS = "time_progress"
    DURATION_KNOWN = "duration_known"
    ENDED = "ended"
    ERROR = "error"


@dataclass
class AudioFrame:
    data: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class AudioBlob:
    data: bytes
    media_type: str = "audio/webm"
    sample_rate: int = 16000
    channels: int = 1

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_raw_pcm(self) -> bool:
        return self.media_type.split(";")[0].strip() == RAW_PCM_MEDIA_TYPE


@dataclass
class DeviceEvent:
    kind: DeviceEventKind
    value: float = 0.0
    handle_id: int = 0
    message: str = ""


@dataclass
class Track:
    """A beat or voice recording as stored by the record store."""

    id: str
    title: str
    audio_url: str
    created_at: str = ""
    note_id: Optional[str] = None
    user_id: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Track":
        known = {"id", "title", "audio_url", "created_at", "note_id", "user_id"}
        return cls(
            id=str(row.get("id", "")),
            title=str(row.get("title", "")),
            audio_url=str(row.get("audio_url", "")),
            created_at=str(row.get("created_at") or ""),
            note_id=row.get("note_id"),
            user_id=row.get("user_id"),
            extra={k: v for k, v in row.items() if k not in known},
        )
