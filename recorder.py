"""Microphone capture device backed by sounddevice."""

from __future__ import annotations

import logging
import threading
import time
from queue import Full, Queue
from typing import Any

from errors import DeviceUnavailableError, PermissionDeniedError
from models import RAW_PCM_MEDIA_TYPE, AudioFrame

logger = logging.getLogger(__name__)

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

_PERMISSION_HINTS = ("permission", "not permitted", "access denied", "unauthorized")


class SoundDeviceRecorder:
    """Pushes 16-bit PCM blocks into the capture queue every ``chunk_ms``."""

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.media_type = f"{RAW_PCM_MEDIA_TYPE};rate={sample_rate};channels={channels}"
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self.dropped_chunks = 0
        self._audio_queue: Queue[AudioFrame | None] | None = None

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise DeviceUnavailableError("sounddevice is not installed")
            self._check_input_device()
            self._audio_queue = audio_queue
            self.dropped_chunks = 0
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            # Set before start() so the first callback block is kept.
            self._running = True
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    callback=self._on_audio,
                )
                self._stream.start()
            except Exception as exc:
                self._running = False
                try:
                    self._close_stream()
                except Exception:
                    logger.debug("Closing a failed input stream raised", exc_info=True)
                raise _map_portaudio_error(exc) from exc
            logger.debug("Input stream started (%d Hz, %d ms blocks)", self.sample_rate, self.chunk_ms)

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                self._emit_sentinel_if_needed()
                return
            self._running = False
            self._close_stream()
            self._emit_sentinel_if_needed()
            if self.dropped_chunks:
                logger.warning("Dropped %d audio chunks (queue full)", self.dropped_chunks)

    def _check_input_device(self) -> None:
        try:
            sd.query_devices(kind="input")
        except Exception as exc:
            raise _map_portaudio_error(exc) from exc

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._audio_queue is None:
            return
        if np is None:
            return
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        frame = AudioFrame(
            data=payload,
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            self._audio_queue.put_nowait(frame)
        except Full:
            self.dropped_chunks += 1

    def _emit_sentinel_if_needed(self) -> None:
        if self._audio_queue is None:
            return
        try:
            self._audio_queue.put_nowait(None)
        except Full:
            pass


def _map_portaudio_error(exc: Exception) -> Exception:
    message = str(exc)
    if any(hint in message.lower() for hint in _PERMISSION_HINTS):
        return PermissionDeniedError(message)
    return DeviceUnavailableError(message)
