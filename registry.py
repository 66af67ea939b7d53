"""Session registry: one recording at a time, one owner of global playback."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import TYPE_CHECKING, Callable, Optional

from errors import OwnershipRevokedError
from models import PlaybackState, Track
from playback_session import PlaybackSession

if TYPE_CHECKING:
    from capture_session import CaptureSession

logger = logging.getLogger(__name__)

_token_ids = itertools.count(1)


class PlaybackToken:
    """Exclusive right for one UI surface to drive the shared playback session."""

    def __init__(
        self,
        registry: SessionRegistry,
        owner: str,
        on_revoked: Optional[Callable[[], None]] = None,
    ) -> None:
        self.id = next(_token_ids)
        self.owner = owner
        self._registry = registry
        self._on_revoked = on_revoked
        self._revoked = False

    @property
    def valid(self) -> bool:
        return not self._revoked

    @property
    def session(self) -> PlaybackSession:
        if self._revoked:
            raise OwnershipRevokedError(f"playback token of {self.owner!r} was revoked")
        return self._registry.playback

    def release(self) -> None:
        self._registry.release_playback(self)

    def _revoke(self) -> None:
        if self._revoked:
            return
        self._revoked = True
        if self._on_revoked:
            self._on_revoked()


class SessionRegistry:
    def __init__(self, playback: PlaybackSession) -> None:
        self.playback = playback
        self._lock = threading.RLock()
        self._capture_owner: CaptureSession | None = None
        self._token: PlaybackToken | None = None
        self._now_playing: Track | None = None

    # ------------------------------------------------------------------
    # Capture slot
    # ------------------------------------------------------------------

    @property
    def can_record(self) -> bool:
        return self._capture_owner is None

    def claim_capture(self, session: CaptureSession) -> bool:
        with self._lock:
            if self._capture_owner is not None and self._capture_owner is not session:
                return False
            self._capture_owner = session
            return True

    def release_capture(self, session: CaptureSession) -> None:
        with self._lock:
            if self._capture_owner is session:
                self._capture_owner = None

    # ------------------------------------------------------------------
    # Global playback ownership
    # ------------------------------------------------------------------

    @property
    def current_token(self) -> PlaybackToken | None:
        return self._token

    @property
    def now_playing(self) -> Track | None:
        return self._now_playing

    def acquire_playback(
        self,
        owner: str,
        on_revoked: Optional[Callable[[], None]] = None,
    ) -> PlaybackToken:
        with self._lock:
            previous = self._token
            if previous is not None:
                if self.playback.state == PlaybackState.PLAYING:
                    self.playback.pause()
                previous._revoke()
                logger.debug("Revoked playback token of %s", previous.owner)
            token = PlaybackToken(self, owner, on_revoked)
            self._token = token
            return token

    def release_playback(self, token: PlaybackToken) -> None:
        with self._lock:
            if self._token is not token:
                return
            if self.playback.state == PlaybackState.PLAYING:
                self.playback.pause()
            token._revoke()
            self._token = None

    def play_now(
        self,
        owner: str,
        track: Track,
        on_revoked: Optional[Callable[[], None]] = None,
    ) -> PlaybackToken:
        """Hand the shared session to ``owner`` and start ``track``."""
        with self._lock:
            token = self.acquire_playback(owner, on_revoked)
            session = token.session
            if session.source_url != track.audio_url:
                session.bind(track.audio_url)
            self._now_playing = track if session.source_url == track.audio_url else None
            session.play()
            return token

    def close_now_playing(self) -> None:
        with self._lock:
            self.playback.unbind()
            self._now_playing = None
            token, self._token = self._token, None
            if token is not None:
                token._revoke()
