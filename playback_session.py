"""Single-source playback session with seek, volume and mute controls.

The session owns one playback device handle per bound source. Devices report
progress asynchronously by posting ``DeviceEvent`` messages into the session's
queue; ``pump()`` consumes them on the caller's thread so every state change
goes through the same methods whether it came from the user or the device.
"""

from __future__ import annotations

import logging
import math
import threading
from queue import Empty, Queue
from typing import Callable, Optional

from errors import PLAYBACK_ERROR
from interfaces import ErrorCallback, PlaybackDevice, PlaybackDeviceFactory
from models import DeviceEvent, DeviceEventKind, PlaybackState

logger = logging.getLogger(__name__)

DEFAULT_VOLUME = 0.7

StateCallback = Callable[[PlaybackState, PlaybackState], None]
ProgressCallback = Callable[[float, float], None]


def _finite(value: object) -> float | None:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def format_time(seconds: object) -> str:
    """Render seconds as ``m:ss``, truncating; unknown values give ``0:00``."""
    value = _finite(seconds)
    if value is None or value < 0:
        return "0:00"
    minutes, secs = divmod(int(value), 60)
    return f"{minutes}:{secs:02d}"


def progress_percent(position: float, duration: float | None) -> float:
    total = _finite(duration)
    current = _finite(position)
    if total is None or total <= 0 or current is None:
        return 0.0
    return min(100.0, max(0.0, current / total * 100.0))


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


class PlaybackSession:
    def __init__(
        self,
        device_factory: PlaybackDeviceFactory,
        volume: float = DEFAULT_VOLUME,
        on_state_change: Optional[StateCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_pause: Optional[Callable[[], None]] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._device_factory = device_factory
        self._on_state_change = on_state_change
        self._on_progress = on_progress
        self._on_pause = on_pause
        self._on_error = on_error

        self._lock = threading.RLock()
        self._events: Queue[DeviceEvent] = Queue()
        self._device: PlaybackDevice | None = None
        self._handle_id = 0
        self._source_url: str | None = None
        self._state = PlaybackState.IDLE
        self._position = 0.0
        self._duration: float | None = None
        self._progress = 0.0
        self._volume = _clamp(float(volume), 0.0, 1.0)
        self._last_audible_volume = self._volume or DEFAULT_VOLUME
        self._muted = False

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def source_url(self) -> str | None:
        return self._source_url

    @property
    def position_seconds(self) -> float:
        return self._position

    @property
    def duration_seconds(self) -> float | None:
        return self._duration

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def events(self) -> Queue[DeviceEvent]:
        return self._events

    def bind(self, source_url: str) -> None:
        with self._lock:
            self._release_handle()
            self._reset_position()
            self._transition(PlaybackState.IDLE)
            self._handle_id += 1
            try:
                device = self._device_factory()
            except Exception as exc:
                self._source_url = None
                self._emit_error(PLAYBACK_ERROR, str(exc))
                return
            try:
                device.load(source_url, self._events, self._handle_id)
            except Exception as exc:
                self._source_url = None
                self._safe_release(device)
                self._emit_error(PLAYBACK_ERROR, str(exc))
                return
            self._device = device
            self._source_url = source_url
            logger.debug("Bound %s (handle %d)", source_url, self._handle_id)

    def unbind(self) -> None:
        with self._lock:
            self._release_handle()
            self._source_url = None
            self._reset_position()
            self._transition(PlaybackState.IDLE)

    close = unbind

    def __enter__(self) -> PlaybackSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def play(self) -> None:
        with self._lock:
            device = self._device
            if device is None or self._state == PlaybackState.PLAYING:
                return
            try:
                if self._state == PlaybackState.ENDED:
                    # on_ended rewound to 0; a seek since then moved it.
                    device.seek(self._position)
                device.play()
            except Exception as exc:
                self._emit_error(PLAYBACK_ERROR, str(exc))
                return
            self._transition(PlaybackState.PLAYING)

    def pause(self) -> None:
        with self._lock:
            device = self._device
            if device is None or self._state != PlaybackState.PLAYING:
                return
            try:
                device.pause()
            except Exception as exc:
                self._emit_error(PLAYBACK_ERROR, str(exc))
                return
            self._transition(PlaybackState.PAUSED)
        if self._on_pause:
            self._on_pause()

    def toggle_play(self) -> None:
        if self._state == PlaybackState.PLAYING:
            self.pause()
        else:
            self.play()

    def seek(self, target_percent: float) -> None:
        with self._lock:
            device = self._device
            duration = self._duration
            if device is None or duration is None or duration <= 0:
                return
            percent = _clamp(float(target_percent), 0.0, 100.0)
            target_seconds = percent / 100.0 * duration
            try:
                device.seek(target_seconds)
            except Exception as exc:
                self._emit_error(PLAYBACK_ERROR, str(exc))
                return
            self._position = target_seconds
            self._progress = percent
        self._emit_progress()

    def set_volume(self, volume: float) -> None:
        with self._lock:
            self._volume = _clamp(float(volume), 0.0, 1.0)
            if self._volume > 0:
                self._last_audible_volume = self._volume
            self._muted = False
            self._apply_volume()

    def toggle_mute(self) -> None:
        """Flip mute; unmuting at volume 0 restores the last audible volume."""
        with self._lock:
            self._muted = not self._muted
            if not self._muted and self._volume <= 0:
                self._volume = self._last_audible_volume
            self._apply_volume()

    # ------------------------------------------------------------------
    # Device notifications
    # ------------------------------------------------------------------

    def pump(self) -> int:
        """Dispatch queued device events; returns how many were applied."""
        applied = 0
        while True:
            try:
                event = self._events.get_nowait()
            except Empty:
                return applied
            if self.handle_event(event):
                applied += 1

    def handle_event(self, event: DeviceEvent) -> bool:
        with self._lock:
            if self._device is None or event.handle_id != self._handle_id:
                logger.debug("Dropping stale %s event from handle %d", event.kind, event.handle_id)
                return False
        if event.kind == DeviceEventKind.TIME_PROGRESS:
            self.on_time_progress(event.value)
        elif event.kind == DeviceEventKind.DURATION_KNOWN:
            self.on_duration_known(event.value)
        elif event.kind == DeviceEventKind.ENDED:
            self.on_ended()
        elif event.kind == DeviceEventKind.ERROR:
            self.on_device_error(event.message)
        return True

    def on_time_progress(self, current_seconds: float) -> None:
        with self._lock:
            position = _finite(current_seconds)
            position = max(0.0, position) if position is not None else 0.0
            if self._duration is not None:
                position = min(position, self._duration)
            self._position = position
            self._progress = progress_percent(position, self._duration)
        self._emit_progress()

    def on_duration_known(self, total_seconds: float) -> None:
        with self._lock:
            duration = _finite(total_seconds)
            if duration is None or duration < 0:
                return
            self._duration = duration
            self._position = min(self._position, duration)
            self._progress = progress_percent(self._position, duration)
            self._apply_volume()

    def on_ended(self) -> None:
        with self._lock:
            self._transition(PlaybackState.ENDED)
            self._position = 0.0
            self._progress = 0.0
        self._emit_progress()
        if self._on_pause:
            self._on_pause()

    def on_device_error(self, message: str) -> None:
        self._emit_error(PLAYBACK_ERROR, message)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _apply_volume(self) -> None:
        device = self._device
        if device is None:
            return
        try:
            device.set_volume(0.0 if self._muted else self._volume)
        except Exception as exc:
            self._emit_error(PLAYBACK_ERROR, str(exc))

    def _reset_position(self) -> None:
        self._position = 0.0
        self._duration = None
        self._progress = 0.0

    def _release_handle(self) -> None:
        device, self._device = self._device, None
        if device is not None:
            self._safe_release(device)
        while True:
            try:
                self._events.get_nowait()
            except Empty:
                break

    def _safe_release(self, device: PlaybackDevice) -> None:
        try:
            device.release()
        except Exception:
            logger.warning("Playback device did not release cleanly", exc_info=True)

    def _emit_progress(self) -> None:
        if self._on_progress:
            self._on_progress(self._position, self._progress)

    def _emit_error(self, code: str, message: str) -> None:
        logger.warning("Playback error %s: %s", code, message)
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_state: PlaybackState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("Playback %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
