"""Simple JSON-based config store."""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, object] = {
    "backend_url": "",
    "api_key": "",
    "access_token": "",
    "user_id": "",
    "note_id": "",
    "language": "fr",
    "volume": 0.7,
    "chunk_ms": 100,
    "log_level": "INFO",
}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "beatpad" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> object:
        data = self._read_all()
        return data.get(key, DEFAULTS.get(key))

    def set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def get_volume(self) -> float:
        try:
            volume = float(self.get("volume"))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return float(DEFAULTS["volume"])  # type: ignore[arg-type]
        return min(1.0, max(0.0, volume))

    def set_volume(self, volume: float) -> None:
        self.set("volume", min(1.0, max(0.0, float(volume))))

    def get_chunk_ms(self) -> int:
        try:
            chunk_ms = int(self.get("chunk_ms"))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return int(DEFAULTS["chunk_ms"])  # type: ignore[arg-type]
        return chunk_ms if chunk_ms > 0 else int(DEFAULTS["chunk_ms"])  # type: ignore[arg-type]

    def get_language(self) -> str:
        return str(self.get("language") or DEFAULTS["language"])

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable config file %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
