"""Overlay window for toasts and the now-playing line."""

from __future__ import annotations

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

_BASE_STYLE = "font-size: 16px; padding: 12px; border-radius: 10px;"
_STYLES = {
    "info": f"color: white; background: rgba(0,0,0,190); {_BASE_STYLE}",
    "error": f"color: #FF6B6B; background: rgba(0,0,0,210); {_BASE_STYLE}",
    "success": f"color: #7CE38B; background: rgba(0,0,0,190); {_BASE_STYLE}",
}


class OverlayWindow(QWidget):
    """Bottom-of-screen strip: a toast label above a now-playing label."""

    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(520)

        self._toast = QLabel("")
        self._toast.setWordWrap(True)
        self._toast.hide()
        self._now_playing = QLabel("")
        self._now_playing.setStyleSheet(_STYLES["info"])
        self._now_playing.hide()

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)
        layout.addWidget(self._toast)
        layout.addWidget(self._now_playing)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def _place_bottom(self) -> None:
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + geom.height() - self.height() - 24
        self.move(x, y)

    def _refresh(self) -> None:
        if self._toast.isHidden() and self._now_playing.isHidden():
            self.hide()
            return
        self._place_bottom()
        self.show()

    def show_toast(self, text: str, kind: str = "info", hide_after_ms: int = 2500) -> None:
        """Show a transient message; it disappears after ``hide_after_ms``."""
        self._cancel_hide_timer()
        self._toast.setStyleSheet(_STYLES.get(kind, _STYLES["info"]))
        self._toast.setText(text)
        self._toast.show()
        self._refresh()
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self._hide_toast)
            self._hide_timer.start(hide_after_ms)

    def show_error(self, text: str) -> None:
        self.show_toast(f"⚠️ {text}", kind="error", hide_after_ms=3000)

    def show_notice(self, text: str) -> None:
        self.show_toast(text, kind="success")

    def set_now_playing(self, text: str) -> None:
        """Update the persistent now-playing line; empty text hides it."""
        self._now_playing.setText(text)
        self._now_playing.setVisible(bool(text))
        self._refresh()

    def _hide_toast(self) -> None:
        self._hide_timer = None
        self._toast.hide()
        self._refresh()

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
