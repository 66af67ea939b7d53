from __future__ import annotations

from pathlib import Path

from config import JsonConfigStore


def test_config_read_write(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get("api_key") == ""
    assert store.get_language() == "fr"
    assert store.get_volume() == 0.7
    assert store.get_chunk_ms() == 100

    store.set("api_key", "abc")
    store.set("language", "en")
    store.set_volume(0.25)

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get("api_key") == "abc"
    assert reloaded.get_language() == "en"
    assert reloaded.get_volume() == 0.25


def test_volume_is_clamped(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")

    store.set("volume", 3)
    assert store.get_volume() == 1.0

    store.set_volume(-1)
    assert store.get_volume() == 0.0


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    store.set("volume", "loud")
    store.set("chunk_ms", 0)

    assert store.get_volume() == 0.7
    assert store.get_chunk_ms() == 100


def test_config_invalid_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get("api_key") == ""
    assert store.get_language() == "fr"
