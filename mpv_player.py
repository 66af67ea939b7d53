"""Playback device backed by python-mpv (audio only)."""

from __future__ import annotations

import logging
import time
from queue import Queue
from typing import Any, Optional

from errors import PlaybackDeviceError
from models import DeviceEvent, DeviceEventKind

logger = logging.getLogger(__name__)

try:
    import mpv
except Exception:  # pragma: no cover
    mpv = None  # type: ignore


class MpvPlaybackDevice:
    """One mpv instance per bound source.

    Property observers run on mpv's event thread, so they only post
    ``DeviceEvent`` messages into the owning session's queue.
    """

    def __init__(self, time_update_interval_s: float = 0.25) -> None:
        self._time_update_interval_s = time_update_interval_s
        self._player: Any = None
        self._events: Optional[Queue[DeviceEvent]] = None
        self._handle_id = 0
        self._last_time_update = 0.0
        self._source_url = ""
        self._file_active = False

    def load(self, source_url: str, events: Queue[DeviceEvent], handle_id: int) -> None:
        if mpv is None:
            raise PlaybackDeviceError("python-mpv is not installed")
        self._events = events
        self._handle_id = handle_id
        self._source_url = source_url
        self._file_active = False
        try:
            self._player = mpv.MPV(vo="null", ytdl=False, keep_open="yes")
            self._player.observe_property("time-pos", self._handle_time_pos)
            self._player.observe_property("duration", self._handle_duration)
            self._player.observe_property("eof-reached", self._handle_eof)
            self._player.observe_property("idle-active", self._handle_idle)
            self._player.pause = True
            self._player.play(source_url)
        except Exception as exc:
            self.release()
            raise PlaybackDeviceError(f"cannot load {source_url}: {exc}") from exc

    def play(self) -> None:
        self._set("pause", False)

    def pause(self) -> None:
        self._set("pause", True)

    def seek(self, seconds: float) -> None:
        player = self._require_player()
        try:
            player.seek(seconds, reference="absolute")
        except Exception as exc:
            raise PlaybackDeviceError(f"seek failed: {exc}") from exc

    def set_volume(self, volume: float) -> None:
        self._set("volume", round(min(1.0, max(0.0, volume)) * 100))

    def release(self) -> None:
        player, self._player = self._player, None
        self._events = None
        if player is None:
            return
        try:
            player.terminate()
        except Exception:
            logger.warning("mpv did not terminate cleanly", exc_info=True)

    def _require_player(self) -> Any:
        if self._player is None:
            raise PlaybackDeviceError("no source loaded")
        return self._player

    def _set(self, name: str, value: Any) -> None:
        player = self._require_player()
        try:
            setattr(player, name, value)
        except Exception as exc:
            raise PlaybackDeviceError(f"cannot set {name}: {exc}") from exc

    def _post(self, kind: DeviceEventKind, value: float = 0.0, message: str = "") -> None:
        events = self._events
        if events is None:
            return
        events.put(DeviceEvent(kind=kind, value=value, handle_id=self._handle_id, message=message))

    # Event handlers
    def _handle_time_pos(self, name: str, value: Any) -> None:
        if value is None:
            return
        now = time.monotonic()
        if now - self._last_time_update < self._time_update_interval_s:
            return
        self._last_time_update = now
        self._post(DeviceEventKind.TIME_PROGRESS, float(value))

    def _handle_duration(self, name: str, value: Any) -> None:
        if value is not None:
            self._post(DeviceEventKind.DURATION_KNOWN, float(value))

    def _handle_eof(self, name: str, value: Any) -> None:
        if value:
            self._post(DeviceEventKind.ENDED)

    def _handle_idle(self, name: str, value: Any) -> None:
        # keep-open holds the file after EOF; going idle after the file was
        # active means mpv failed to load or decode it.
        if value is None:
            return
        if not value:
            self._file_active = True
            return
        if self._file_active:
            self._file_active = False
            self._post(DeviceEventKind.ERROR, message=f"cannot play {self._source_url}")
