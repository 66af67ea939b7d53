"""Protocol interfaces used by the capture and playback sessions."""

from __future__ import annotations

from queue import Queue
from typing import Callable, Protocol

from models import AudioFrame, DeviceEvent

ErrorCallback = Callable[[str, str], None]
NoticeCallback = Callable[[str], None]


class CaptureDevice(Protocol):
    media_type: str

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class PlaybackDevice(Protocol):
    def load(self, source_url: str, events: Queue[DeviceEvent], handle_id: int) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, seconds: float) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def release(self) -> None: ...


PlaybackDeviceFactory = Callable[[], PlaybackDevice]
