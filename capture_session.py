"""State-machine based voice capture session."""

from __future__ import annotations

import logging
import threading
from queue import Empty, Queue
from typing import TYPE_CHECKING, Callable, Optional

from errors import (
    CAPTURE_BUSY,
    DEVICE_UNAVAILABLE,
    NO_AUDIO_CAPTURED,
    PERMISSION_DENIED,
    PermissionDeniedError,
)
from interfaces import CaptureDevice, ErrorCallback
from models import AudioBlob, AudioFrame, CaptureState

if TYPE_CHECKING:
    from registry import SessionRegistry

logger = logging.getLogger(__name__)

StateCallback = Callable[[CaptureState, CaptureState], None]
TickCallback = Callable[[int], None]
CompleteCallback = Callable[[AudioBlob], None]


class _Ticker:
    """Calls ``callback`` every ``interval_s`` on a daemon thread until stopped."""

    def __init__(self, interval_s: float, callback: Callable[[], None]) -> None:
        self._interval_s = interval_s
        self._callback = callback
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout_s: float = 1.0) -> None:
        if self._thread is threading.current_thread() or not self._thread.is_alive():
            return
        self._thread.join(timeout_s)

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval_s):
            self._callback()


class CaptureSession:
    def __init__(
        self,
        device: CaptureDevice,
        media_type: str = "audio/webm",
        registry: Optional[SessionRegistry] = None,
        tick_interval_s: float = 1.0,
        queue_maxsize: int = 0,
        on_state_change: Optional[StateCallback] = None,
        on_tick: Optional[TickCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._device = device
        self._media_type = media_type
        self._registry = registry
        self._tick_interval_s = tick_interval_s
        self._on_state_change = on_state_change
        self._on_tick = on_tick
        self._on_complete = on_complete
        self._on_error = on_error

        self._lock = threading.RLock()
        self._state = CaptureState.IDLE
        self._chunks: list[bytes] = []
        self._result_blob: AudioBlob | None = None
        self._elapsed_seconds = 0
        self._frame_format = (16000, 1)
        self._audio_queue: Queue[AudioFrame | None] = Queue(maxsize=queue_maxsize)
        self._ticker: _Ticker | None = None
        self._device_held = False

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed_seconds

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def result_blob(self) -> AudioBlob | None:
        return self._result_blob

    def start(self) -> None:
        with self._lock:
            if self._state == CaptureState.RECORDING:
                return
            if self._registry is not None and not self._registry.claim_capture(self):
                self._emit_error(CAPTURE_BUSY, "another capture session is recording")
                return
            self._chunks = []
            self._result_blob = None
            self._elapsed_seconds = 0
            self._audio_queue = Queue(maxsize=self._audio_queue.maxsize)
            self._device_held = True
            try:
                self._device.start(self._audio_queue)
            except Exception as exc:
                code = PERMISSION_DENIED if isinstance(exc, PermissionDeniedError) else DEVICE_UNAVAILABLE
                self._release_device()
                self._drain_queue(keep=False)
                self._release_slot()
                self._transition(CaptureState.IDLE)
                self._emit_error(code, str(exc))
                return
            self._transition(CaptureState.RECORDING)
            self._ticker = _Ticker(self._tick_interval_s, self.tick)
            self._ticker.start()

    def tick(self) -> None:
        """Advance the elapsed-seconds counter; driven by the 1 s ticker."""
        with self._lock:
            if self._state != CaptureState.RECORDING:
                return
            self._elapsed_seconds += 1
            elapsed = self._elapsed_seconds
        if self._on_tick:
            self._on_tick(elapsed)

    def on_data_available(self, fragment: bytes) -> None:
        with self._lock:
            if self._state != CaptureState.RECORDING or not fragment:
                return
            self._chunks.append(bytes(fragment))

    def pump(self) -> None:
        """Move frames queued by the device into the chunk list."""
        with self._lock:
            if self._state != CaptureState.RECORDING:
                return
            self._drain_queue(keep=True)

    def stop(self) -> None:
        blob: AudioBlob | None = None
        with self._lock:
            if self._state != CaptureState.RECORDING:
                return
            self._transition(CaptureState.STOPPED)
            ticker = self._halt_ticker()
            # Chunks still in flight are flushed before the device's sentinel.
            self._release_device()
            self._drain_queue(keep=True)
            self._release_slot()

            if not self._chunks:
                self._emit_error(NO_AUDIO_CAPTURED, "no audio chunks were captured")
            else:
                media_type = getattr(self._device, "media_type", "") or self._media_type
                sample_rate, channels = self._frame_format
                blob = AudioBlob(
                    data=b"".join(self._chunks),
                    media_type=media_type,
                    sample_rate=sample_rate,
                    channels=channels,
                )
                self._result_blob = blob
                logger.info("Capture finalized: %d chunks, %d bytes", len(self._chunks), blob.size)

        # Joined outside the lock: a pending tick() needs it to see STOPPED.
        if ticker is not None:
            ticker.join()
        if blob is not None and self._on_complete:
            self._on_complete(blob)

    def close(self) -> None:
        """Tear down from any state; the device is always released."""
        with self._lock:
            ticker = self._halt_ticker()
            if self._device_held:
                self._release_device()
            self._drain_queue(keep=False)
            self._release_slot()
            self._chunks = []
            self._result_blob = None
            self._elapsed_seconds = 0
            self._transition(CaptureState.IDLE)
        if ticker is not None:
            ticker.join()

    def __enter__(self) -> CaptureSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _drain_queue(self, keep: bool) -> None:
        while True:
            try:
                frame = self._audio_queue.get_nowait()
            except Empty:
                return
            if frame is None:  # Sentinel
                return
            if not keep:
                continue
            self._frame_format = (frame.sample_rate, frame.channels)
            if frame.data:
                self._chunks.append(bytes(frame.data))

    def _halt_ticker(self) -> _Ticker | None:
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.stop()
        return ticker

    def _release_device(self) -> None:
        self._device_held = False
        try:
            self._device.stop()
        except Exception:
            logger.warning("Capture device did not release cleanly", exc_info=True)

    def _release_slot(self) -> None:
        if self._registry is not None:
            self._registry.release_capture(self)

    def _emit_error(self, code: str, message: str) -> None:
        logger.warning("Capture error %s: %s", code, message)
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_state: CaptureState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("Capture %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
