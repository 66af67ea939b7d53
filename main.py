"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from backend import BackendClient
from blobs import BlobUrlStore
from capture_session import CaptureSession
from config import JsonConfigStore
from errors import message_for
from library import BeatLibrary, VoiceMemoLibrary
from models import AudioBlob, CaptureState, PlaybackState, Track
from mpv_player import MpvPlaybackDevice
from overlay import OverlayWindow
from playback_session import PlaybackSession, format_time
from recorder import SoundDeviceRecorder
from registry import PlaybackToken, SessionRegistry

try:
    from PySide6.QtCore import QObject, QSize, QTimer, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QFileDialog, QMenu, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

PUMP_INTERVAL_MS = 100
TRAY_OWNER = "tray"


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))  # transparent background
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"      # grey
ICON_RECORDING = "#FF4444"  # red
ICON_PLAYING = "#7B61FF"   # purple


class UIBridge(QObject):
    error_signal = Signal(str)
    notice_signal = Signal(str)
    tick_signal = Signal(int)
    capture_state_signal = Signal(str, str)  # from_state, to_state
    capture_complete_signal = Signal(object)
    memo_saved_signal = Signal(object)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.language = self.config_store.get_language()
        logging.basicConfig(
            level=str(self.config_store.get("log_level")).upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.error_signal.connect(self.overlay.show_error)
        self.ui.notice_signal.connect(self.overlay.show_notice)
        self.ui.tick_signal.connect(self._on_tick_ui)
        self.ui.capture_state_signal.connect(self._on_capture_state_ui)
        self.ui.capture_complete_signal.connect(self._on_capture_complete_ui)
        self.ui.memo_saved_signal.connect(self._on_memo_saved_ui)

        self.blob_urls = BlobUrlStore()
        self.last_memo: Track | None = None
        self.token: PlaybackToken | None = None

        playback = PlaybackSession(
            device_factory=MpvPlaybackDevice,
            volume=self.config_store.get_volume(),
            on_state_change=lambda _f, _t: self._refresh_now_playing(),
            on_pause=self._refresh_now_playing,
            on_error=self._on_error,
        )
        self.registry = SessionRegistry(playback)
        self.capture = CaptureSession(
            device=SoundDeviceRecorder(chunk_ms=self.config_store.get_chunk_ms()),
            registry=self.registry,
            on_state_change=self._on_capture_state,
            on_tick=self.ui.tick_signal.emit,
            on_complete=self.ui.capture_complete_signal.emit,
            on_error=self._on_error,
        )

        self.client: BackendClient | None = None
        self.memos: VoiceMemoLibrary | None = None
        self.beats: BeatLibrary | None = None
        backend_url = str(self.config_store.get("backend_url") or "")
        if backend_url:
            self.client = BackendClient(
                base_url=backend_url,
                api_key=str(self.config_store.get("api_key") or ""),
                access_token=str(self.config_store.get("access_token") or ""),
            )
            common = dict(
                language=self.language,
                on_error=self._on_error,
                on_notice=self.ui.notice_signal.emit,
            )
            self.memos = VoiceMemoLibrary(self.client, **common)
            self.beats = BeatLibrary(self.client, **common)

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Beatpad — Ready")
        self._setup_menu()
        self.tray.show()

        self.pump_timer = QTimer()
        self.pump_timer.timeout.connect(self._pump)

    def _setup_menu(self) -> None:
        menu = QMenu()

        self.record_action = QAction("Record voice memo", menu)
        self.record_action.triggered.connect(self._toggle_recording)
        menu.addAction(self.record_action)

        self.play_memo_action = QAction("Play last memo", menu)
        self.play_memo_action.setEnabled(False)
        self.play_memo_action.triggered.connect(self._play_last_memo)
        menu.addAction(self.play_memo_action)

        self.beats_menu = menu.addMenu("Beats")
        self.beats_menu.aboutToShow.connect(self._populate_beats_menu)
        self.beats_menu.setEnabled(self.beats is not None)

        upload_action = QAction("Upload beat…", menu)
        upload_action.setEnabled(self.beats is not None)
        upload_action.triggered.connect(self._upload_beat)
        menu.addAction(upload_action)

        menu.addSeparator()
        play_pause_action = QAction("Play / Pause", menu)
        play_pause_action.triggered.connect(self._toggle_play)
        menu.addAction(play_pause_action)

        mute_action = QAction("Mute / Unmute", menu)
        mute_action.triggered.connect(self._toggle_mute)
        menu.addAction(mute_action)

        close_action = QAction("Close player", menu)
        close_action.triggered.connect(self._close_player)
        menu.addAction(close_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    # ------------------------------------------------------------------
    # Callbacks (may run on worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_error(self, code: str, message: str) -> None:
        logger.warning("%s: %s", code, message)
        self.ui.error_signal.emit(message_for(code, self.language))

    def _on_capture_state(self, from_state: CaptureState, to_state: CaptureState) -> None:
        self.ui.capture_state_signal.emit(from_state.value, to_state.value)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_tick_ui(self, elapsed: int) -> None:
        self.tray.setToolTip(f"Beatpad — Recording {format_time(elapsed)}")

    def _on_capture_state_ui(self, from_state: str, to_state: str) -> None:
        if to_state == CaptureState.RECORDING.value:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip(f"Beatpad — Recording {format_time(0)}")
            self.record_action.setText("Stop recording")
        else:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("Beatpad — Ready")
            self.record_action.setText("Record voice memo")
        self.record_action.setEnabled(
            self.registry.can_record or self.capture.state == CaptureState.RECORDING
        )

    def _on_capture_complete_ui(self, blob: AudioBlob) -> None:
        url = self.blob_urls.create_object_url(blob)
        self.last_memo = Track(id="", title="Voice memo", audio_url=url)
        self.play_memo_action.setEnabled(True)

        note_id = str(self.config_store.get("note_id") or "")
        user_id = str(self.config_store.get("user_id") or "")
        if self.memos is None or not note_id:
            return
        memos = self.memos
        # Upload off the UI thread; the local URL stays playable meanwhile.
        threading.Thread(
            target=lambda: self.ui.memo_saved_signal.emit(
                memos.save_capture(blob, note_id=note_id, user_id=user_id)
            ),
            daemon=True,
        ).start()

    def _on_memo_saved_ui(self, track: Track | None) -> None:
        if track is None:
            return
        previous = self.last_memo
        self.last_memo = track
        if previous is not None and previous.audio_url != self.registry.playback.source_url:
            self.blob_urls.revoke_object_url(previous.audio_url)

    def _refresh_now_playing(self) -> None:
        playback = self.registry.playback
        track = self.registry.now_playing
        if track is None or playback.source_url is None:
            self.overlay.set_now_playing("")
            return
        icon = "▶" if playback.state == PlaybackState.PLAYING else "⏸"
        self.overlay.set_now_playing(
            f"{icon} {track.title}  "
            f"{format_time(playback.position_seconds)} / {format_time(playback.duration_seconds)}"
        )

    # ------------------------------------------------------------------
    # Menu actions
    # ------------------------------------------------------------------

    def _toggle_recording(self) -> None:
        if self.capture.state == CaptureState.RECORDING:
            self.capture.stop()
        else:
            self.capture.start()

    def _play(self, track: Track) -> None:
        self.token = self.registry.play_now(TRAY_OWNER, track, on_revoked=self._on_token_revoked)
        self.tray.setIcon(_create_icon(ICON_PLAYING))
        self._refresh_now_playing()

    def _play_last_memo(self) -> None:
        if self.last_memo is not None:
            self._play(self.last_memo)

    def _populate_beats_menu(self) -> None:
        self.beats_menu.clear()
        if self.beats is None:
            return
        user_id = str(self.config_store.get("user_id") or "")
        for beat in self.beats.list_for_user(user_id):
            action = self.beats_menu.addAction(beat.title)
            action.triggered.connect(lambda _checked=False, b=beat: self._play(b))

    def _upload_beat(self) -> None:
        if self.beats is None:
            return
        filename, _ = QFileDialog.getOpenFileName(None, "Upload beat", "", "Audio (*.mp3 *.wav *.ogg *.m4a)")
        if filename:
            self.beats.upload(str(self.config_store.get("user_id") or ""), Path(filename))

    def _toggle_play(self) -> None:
        if self.token is not None and self.token.valid:
            self.token.session.toggle_play()

    def _toggle_mute(self) -> None:
        if self.token is not None and self.token.valid:
            self.token.session.toggle_mute()

    def _close_player(self) -> None:
        self.registry.close_now_playing()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self._refresh_now_playing()

    def _on_token_revoked(self) -> None:
        self.token = None

    def _pump(self) -> None:
        self.capture.pump()
        if self.registry.playback.pump():
            self._refresh_now_playing()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.pump_timer.start(PUMP_INTERVAL_MS)
        return self.app.exec()

    def quit(self) -> None:
        self.pump_timer.stop()
        self.capture.close()
        self.config_store.set_volume(self.registry.playback.volume)
        self.registry.close_now_playing()
        self.blob_urls.revoke_all()
        if self.client is not None:
            self.client.close()
        self.app.quit()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
