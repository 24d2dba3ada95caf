"""In-memory registry of headless practice sessions with idle expiry.

WHY: The HTTP API drives one PlaybackControls per learner session. Each
session needs a stable id across requests, a shared cache so a new
session for the same video resumes the saved speed, and cleanup so
abandoned sessions do not pile up.

HOW: Two components:
  PracticeSession  (dataclass) a VirtualPlayer, its PlaybackControls,
                   and access timestamps
  SessionRegistry  dict-based store guarded by a threading.Lock with
                   create/get/list/remove, flush_all() for the periodic
                   save, and cleanup_expired() for idle sessions

RULES:
- Store mutations hold self._lock; awaited teardown runs outside it
- Session ids are UUID4 hex strings
- get_session() returns None for unknown ids and bumps last_access
- Sessions idle longer than the TTL are destroyed (final save included)
- Controls are created with their own flush task disabled; the app's
  lifespan task calls flush_all() instead
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from cue_navigator.adapters.cache import InMemoryCacheStore
from cue_navigator.adapters.player import VirtualPlayer
from cue_navigator.config import AUTO_RESUME, DEFAULT_THRESHOLDS, Thresholds
from cue_navigator.controls.base import CacheStore
from cue_navigator.controls.controller import PlaybackControls
from cue_navigator.core.ir import SubtitleTrack

logger = logging.getLogger(__name__)

# Sessions idle longer than this are expired (seconds)
DEFAULT_SESSION_TTL_SECONDS = 3600


@dataclass
class PracticeSession:
    """One learner's headless playback session.

    RULES:
    - id is immutable after creation
    - controls is bound to player; never swap one without the other
    """

    id: str
    video_id: str
    player: VirtualPlayer
    controls: PlaybackControls
    created_at: float
    last_access: float


class SessionRegistry:
    """Thread-safe store of PracticeSession objects.

    RULES:
    - create_session() raises ValueError when max_sessions is reached
    - remove_session() and cleanup_expired() destroy the controls, which
      attempts one final snapshot save
    """

    def __init__(
        self,
        cache: Optional[CacheStore] = None,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        max_sessions: int = 100,
    ) -> None:
        self.cache = cache if cache is not None else InMemoryCacheStore()
        self._thresholds = thresholds
        self._sessions: Dict[str, PracticeSession] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions

    async def create_session(
        self,
        video_id: str,
        duration: float = 0.0,
        track: Optional[SubtitleTrack] = None,
        current_time: float = 0.0,
        auto_resume: Optional[bool] = None,
    ) -> PracticeSession:
        """Build a player and controls for a video and restore its saved state."""
        player = VirtualPlayer(duration=duration, track=track)
        player.seek(current_time)
        controls = PlaybackControls(
            player,
            self.cache,
            video_id=video_id,
            thresholds=self._thresholds,
            auto_resume=AUTO_RESUME if auto_resume is None else auto_resume,
        )

        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise ValueError(
                    "Maximum number of concurrent sessions ({}) reached".format(self.max_sessions)
                )
            now = time.time()
            session = PracticeSession(
                id=uuid.uuid4().hex,
                video_id=video_id,
                player=player,
                controls=controls,
                created_at=now,
                last_access=now,
            )
            self._sessions[session.id] = session

        await controls.initialize(track_state=False)
        logger.info("Created practice session %s for video %s", session.id, video_id)
        return session

    def get_session(self, session_id: str) -> Optional[PracticeSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.last_access = time.time()
            return session

    def list_sessions(self) -> List[PracticeSession]:
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    async def remove_session(self, session_id: str) -> bool:
        """Destroy a session (final save included). Returns False for unknown ids."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        await session.controls.destroy()
        logger.info("Removed practice session %s", session_id)
        return True

    async def flush_all(self) -> int:
        """Save every live session's snapshot; returns how many saves succeeded."""
        saved = 0
        for session in self.list_sessions():
            if await session.controls.save_state():
                saved += 1
        return saved

    async def cleanup_expired(self) -> int:
        """Destroy sessions idle longer than the TTL; returns how many were removed."""
        now = time.time()
        expired: List[PracticeSession] = []
        with self._lock:
            for session_id, session in list(self._sessions.items()):
                if now - session.last_access > self._ttl_seconds:
                    expired.append(self._sessions.pop(session_id))

        for session in expired:
            await session.controls.destroy()
            logger.info("Expired practice session %s (idle %.0fs)", session.id, now - session.last_access)
        return len(expired)

    async def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            await session.controls.destroy()
