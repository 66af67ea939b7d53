"""Tests for PlaybackSession and the time helpers."""

from __future__ import annotations

import math
from queue import Queue

import pytest

from errors import PLAYBACK_ERROR, PlaybackDeviceError
from models import DeviceEvent, DeviceEventKind, PlaybackState
from playback_session import PlaybackSession, format_time, progress_percent


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

class FakePlaybackDevice:
    def __init__(self, log: list[str], name: str, fail_on: str = "") -> None:
        self.log = log
        self.name = name
        self.fail_on = fail_on
        self.events: Queue[DeviceEvent] | None = None
        self.handle_id = 0
        self.volumes: list[float] = []
        self.seeks: list[float] = []
        self.playing = False
        self.released = False

    def _maybe_fail(self, op: str) -> None:
        if self.fail_on == op:
            raise PlaybackDeviceError(f"{op} rejected")

    def load(self, source_url: str, events: Queue[DeviceEvent], handle_id: int) -> None:
        self.log.append(f"acquire {self.name} {source_url}")
        self._maybe_fail("load")
        self.events = events
        self.handle_id = handle_id

    def play(self) -> None:
        self._maybe_fail("play")
        self.playing = True

    def pause(self) -> None:
        self._maybe_fail("pause")
        self.playing = False

    def seek(self, seconds: float) -> None:
        self._maybe_fail("seek")
        self.seeks.append(seconds)

    def set_volume(self, volume: float) -> None:
        self.volumes.append(volume)

    def release(self) -> None:
        self.log.append(f"release {self.name}")
        self.released = True

    def post(self, kind: DeviceEventKind, value: float = 0.0, message: str = "") -> None:
        assert self.events is not None
        self.events.put(DeviceEvent(kind=kind, value=value, handle_id=self.handle_id, message=message))


class DeviceFactory:
    def __init__(self, fail_on: str = "") -> None:
        self.log: list[str] = []
        self.devices: list[FakePlaybackDevice] = []
        self.fail_on = fail_on

    def __call__(self) -> FakePlaybackDevice:
        device = FakePlaybackDevice(self.log, f"dev{len(self.devices) + 1}", self.fail_on)
        self.devices.append(device)
        return device

    @property
    def current(self) -> FakePlaybackDevice:
        return self.devices[-1]


def _session(factory: DeviceFactory, **kwargs) -> tuple[PlaybackSession, list[tuple[str, str]]]:  # noqa: ANN003
    errors: list[tuple[str, str]] = []
    session = PlaybackSession(device_factory=factory, on_error=lambda c, m: errors.append((c, m)), **kwargs)
    return session, errors


# ---------------------------------------------------------------
# format_time / progress_percent
# ---------------------------------------------------------------

@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (float("nan"), "0:00"),
        (None, "0:00"),
        (float("inf"), "0:00"),
        (-3, "0:00"),
        (0, "0:00"),
        (5, "0:05"),
        (59.99, "0:59"),
        (65, "1:05"),
        (600, "10:00"),
    ],
)
def test_format_time(seconds: object, expected: str) -> None:
    assert format_time(seconds) == expected


def test_progress_percent_guards_unknown_duration() -> None:
    assert progress_percent(10, None) == 0.0
    assert progress_percent(10, 0) == 0.0
    assert progress_percent(10, math.nan) == 0.0
    assert progress_percent(45, 180) == 25.0


# ---------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------

def test_progress_reads_fifty_percent_halfway() -> None:
    factory = DeviceFactory()
    session, errors = _session(factory)

    session.bind("https://cdn.example/a.mp3")
    assert session.duration_seconds is None
    session.play()
    device = factory.current
    device.post(DeviceEventKind.DURATION_KNOWN, 180.0)
    device.post(DeviceEventKind.TIME_PROGRESS, 90.0)
    assert session.pump() == 2

    assert session.state == PlaybackState.PLAYING
    assert session.position_seconds == 90.0
    assert session.progress == 50.0
    assert errors == []


def test_time_progress_before_duration_gives_zero_progress() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)
    session.bind("a.mp3")

    session.on_time_progress(12.0)

    assert session.position_seconds == 12.0
    assert session.progress == 0.0


def test_rebinding_releases_old_device_before_acquiring_new() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)

    session.bind("urlB")
    session.play()
    session.bind("urlA")

    assert factory.log == ["acquire dev1 urlB", "release dev1", "acquire dev2 urlA"]
    assert session.state == PlaybackState.IDLE
    assert session.source_url == "urlA"
    assert session.position_seconds == 0.0


def test_events_from_released_handle_are_dropped() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)
    session.bind("urlB")
    old = factory.current
    session.on_duration_known(100.0)
    session.seek(40)

    session.bind("urlA")
    old.post(DeviceEventKind.TIME_PROGRESS, 40.0)
    old.post(DeviceEventKind.ENDED)

    assert session.pump() == 0
    assert session.position_seconds == 0.0
    assert session.state == PlaybackState.IDLE


@pytest.mark.parametrize("percent", [0.0, 12.5, 33.3, 50.0, 99.9, 100.0])
def test_seek_sets_position_and_progress(percent: float) -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)
    session.bind("a.mp3")
    session.on_duration_known(215.0)

    session.seek(percent)

    assert session.position_seconds == pytest.approx(percent / 100 * 215.0)
    assert factory.current.seeks == [pytest.approx(percent / 100 * 215.0)]
    assert session.progress == pytest.approx(percent)
    session.on_time_progress(session.position_seconds)
    assert session.progress == pytest.approx(percent)


def test_seek_requires_known_duration() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)
    session.bind("a.mp3")

    session.seek(50)

    assert factory.current.seeks == []
    assert session.position_seconds == 0.0


def test_seek_clamps_out_of_range_percent() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)
    session.bind("a.mp3")
    session.on_duration_known(100.0)

    session.seek(150)

    assert session.position_seconds == 100.0
    assert session.progress == 100.0


def test_time_progress_is_clamped_to_duration() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)
    session.bind("a.mp3")
    session.on_duration_known(30.0)

    session.on_time_progress(31.2)

    assert session.position_seconds == 30.0
    assert session.progress == 100.0


def test_ended_resets_position_and_calls_pause_callback() -> None:
    factory = DeviceFactory()
    paused: list[bool] = []
    session, _ = _session(factory, on_pause=lambda: paused.append(True))
    session.bind("a.mp3")
    session.play()
    session.on_duration_known(60.0)
    session.on_time_progress(59.0)

    factory.current.post(DeviceEventKind.ENDED)
    session.pump()

    assert session.state == PlaybackState.ENDED
    assert session.position_seconds == 0.0
    assert session.progress == 0.0
    assert paused == [True]

    session.play()
    assert session.state == PlaybackState.PLAYING
    assert factory.current.seeks == [0.0]


def test_seek_after_end_is_kept_when_playing_again() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)
    session.bind("a.mp3")
    session.play()
    session.on_duration_known(180.0)
    session.on_ended()

    session.seek(50)
    session.play()

    assert session.state == PlaybackState.PLAYING
    assert session.position_seconds == 90.0
    assert factory.current.seeks == [90.0, 90.0]


def test_pause_keeps_position() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)
    session.bind("a.mp3")
    session.play()
    session.on_duration_known(60.0)
    session.on_time_progress(21.5)

    session.pause()

    assert session.state == PlaybackState.PAUSED
    assert session.position_seconds == 21.5
    assert factory.current.playing is False


def test_pause_outside_playing_is_noop() -> None:
    factory = DeviceFactory()
    paused: list[bool] = []
    session, _ = _session(factory, on_pause=lambda: paused.append(True))
    session.bind("a.mp3")

    session.pause()

    assert session.state == PlaybackState.IDLE
    assert paused == []


def test_play_without_source_is_noop() -> None:
    factory = DeviceFactory()
    session, errors = _session(factory)

    session.play()

    assert session.state == PlaybackState.IDLE
    assert errors == []


def test_rejected_play_reports_error_and_keeps_state() -> None:
    factory = DeviceFactory(fail_on="play")
    session, errors = _session(factory)
    session.bind("a.mp3")

    session.play()

    assert session.state == PlaybackState.IDLE
    assert errors == [(PLAYBACK_ERROR, "play rejected")]


def test_failed_load_keeps_no_handle() -> None:
    factory = DeviceFactory(fail_on="load")
    session, errors = _session(factory)

    session.bind("broken.mp3")

    assert session.source_url is None
    assert factory.current.released is True
    assert [code for code, _ in errors] == [PLAYBACK_ERROR]
    session.play()
    assert session.state == PlaybackState.IDLE


def test_device_error_event_is_reported_once() -> None:
    factory = DeviceFactory()
    session, errors = _session(factory)
    session.bind("a.mp3")
    session.play()

    factory.current.post(DeviceEventKind.ERROR, message="decode failure")
    session.pump()

    assert errors == [(PLAYBACK_ERROR, "decode failure")]
    assert session.state == PlaybackState.PLAYING


# ---------------------------------------------------------------
# Volume / mute
# ---------------------------------------------------------------

def test_duration_known_applies_pending_volume() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory, volume=0.4)
    session.bind("a.mp3")
    assert factory.current.volumes == []

    session.on_duration_known(10.0)

    assert factory.current.volumes == [0.4]


def test_set_volume_clamps_and_clears_mute() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)
    session.bind("a.mp3")
    session.toggle_mute()

    session.set_volume(1.7)

    assert session.volume == 1.0
    assert session.muted is False
    assert factory.current.volumes[-1] == 1.0


def test_toggle_mute_twice_restores_volume() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)
    session.bind("a.mp3")
    session.set_volume(0.55)

    session.toggle_mute()
    assert session.muted is True
    assert factory.current.volumes[-1] == 0.0

    session.toggle_mute()
    assert session.muted is False
    assert factory.current.volumes[-1] == 0.55


def test_unmute_after_zero_volume_uses_last_audible_volume() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)
    session.bind("a.mp3")
    session.set_volume(0.3)
    session.set_volume(0.0)

    session.toggle_mute()
    session.toggle_mute()

    assert factory.current.volumes[-1] == 0.3
    assert session.volume == 0.3


def test_unbind_releases_device() -> None:
    factory = DeviceFactory()
    session, _ = _session(factory)

    with session:
        session.bind("a.mp3")
        session.play()

    assert factory.current.released is True
    assert session.source_url is None
    assert session.state == PlaybackState.IDLE
