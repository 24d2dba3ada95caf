"""FastAPI application exposing headless practice sessions with OpenAPI docs.

WHY: Learners' front ends (a browser extension, a mobile shell, a test
harness) need to drive sentence navigation, marker loops, and speed
practice without embedding the controls in-process. FastAPI gives request
validation and generated docs for free.

HOW: Each POST /sessions builds a VirtualPlayer plus PlaybackControls for
one video and registers it. Later requests look the session up, call one
controls operation, and return the resulting state. A lifespan task
flushes every session snapshot each flush interval and expires idle
sessions.

RULES:
- Error responses use the ErrorResponse schema (404 unknown session,
  429 too many sessions)
- Rejected loop actions are 200 responses with ok=false, not errors
- The registry is a module-level singleton created at import
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response

from cue_navigator import __version__
from cue_navigator.config import FLUSH_INTERVAL_S
from cue_navigator.controls.loop import LoopResult
from cue_navigator.core.ir import Cue, LoopSegment, SubtitleTrack
from cue_navigator.core.navigation import NavigationResult
from cue_navigator.server.models import (
    ErrorResponse,
    HealthResponse,
    LoopAction,
    LoopActionResponse,
    LoopInfo,
    MarkerAction,
    NavigateRequest,
    NavigationResponse,
    SaveResponse,
    SeekRequest,
    SentenceInfo,
    SentenceListResponse,
    SessionCreateRequest,
    SessionResponse,
    SessionStats,
    SpeedRequest,
    SpeedResponse,
    TrackIn,
)
from cue_navigator.server.sessions import PracticeSession, SessionRegistry

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and registry setup
# ---------------------------------------------------------------------------

session_registry = SessionRegistry()

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Session not found"}}


async def _periodic_flush() -> None:
    """Save every session snapshot and expire idle sessions each flush interval."""
    while True:
        await asyncio.sleep(FLUSH_INTERVAL_S)
        try:
            await session_registry.flush_all()
            await session_registry.cleanup_expired()
        except Exception:
            logger.exception("Periodic session flush failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the periodic flush on startup; stop it and close sessions on shutdown."""
    task = asyncio.create_task(_periodic_flush())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    await session_registry.close_all()


app = FastAPI(
    lifespan=lifespan,
    title="Cue Navigator Practice API",
    description=(
        "Headless language-practice playback sessions: sentence-level "
        "navigation over caption cues, IN/OUT marker loops, playback speed, "
        "and per-video session persistence."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_session_or_404(session_id: str) -> PracticeSession:
    session = session_registry.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return session


def _track_from_request(track: Optional[TrackIn]) -> Optional[SubtitleTrack]:
    if track is None:
        return None
    return SubtitleTrack(
        cues=[Cue(id=c.id, start_time=c.start_time, end_time=c.end_time, text=c.text) for c in track.cues],
        is_auto_generated=track.is_auto_generated,
        language=track.language,
        label=track.label,
    )


def _loop_info(loop: Optional[LoopSegment]) -> Optional[LoopInfo]:
    if loop is None:
        return None
    return LoopInfo(id=loop.id, start_time=loop.start_time, end_time=loop.end_time, title=loop.title)


def _session_to_response(session: PracticeSession) -> SessionResponse:
    controls = session.controls
    markers = controls.loops.markers
    return SessionResponse(
        id=session.id,
        video_id=session.video_id,
        current_time=session.player.get_current_time(),
        duration=session.player.get_duration(),
        speed=controls.current_speed,
        vocabulary_mode=controls.vocabulary_mode,
        subtitles_visible=controls.subtitles_visible,
        loop_state=controls.loops.state.value,
        mark_in=markers.in_time,
        mark_out=markers.out_time,
        loop=_loop_info(controls.loops.current_loop),
        sentence_count=len(controls.segmenter.get_available_sentences()),
        group_count=len(controls.resolver.groups),
        stats=SessionStats(**controls.session_stats()),
    )


def _navigation_to_response(result: NavigationResult) -> NavigationResponse:
    return NavigationResponse(
        direction=result.direction.value,
        from_time=result.from_time,
        to_time=result.to_time,
        source=result.source.value,
        matched_text=result.matched_text,
        sentence_index=result.sentence_index,
    )


def _loop_to_response(result: LoopResult) -> LoopActionResponse:
    return LoopActionResponse(
        ok=result.ok,
        message=result.message,
        loop_state=result.state.value,
        loop=_loop_info(result.loop),
    )


# ---------------------------------------------------------------------------
# Endpoints: Sessions
# ---------------------------------------------------------------------------


@app.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=201,
    tags=["sessions"],
    summary="Start a practice session",
    description=(
        "Create a headless playback session for a video and its caption "
        "track. Saved speed and vocabulary mode for the video are restored "
        "when auto-resume is on."
    ),
    responses={
        429: {"model": ErrorResponse, "description": "Too many concurrent sessions"},
    },
)
async def create_session(request: SessionCreateRequest) -> SessionResponse:
    try:
        session = await session_registry.create_session(
            video_id=request.video_id,
            duration=request.duration,
            track=_track_from_request(request.track),
            current_time=request.current_time,
            auto_resume=request.auto_resume,
        )
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))
    return _session_to_response(session)


@app.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    tags=["sessions"],
    summary="Get session state",
    responses=_NOT_FOUND,
)
async def get_session(session_id: str) -> SessionResponse:
    return _session_to_response(_get_session_or_404(session_id))


@app.get(
    "/sessions/{session_id}/sentences",
    response_model=SentenceListResponse,
    tags=["sessions"],
    summary="List detected sentences",
    description="Sentences grouped from the session's caption cues, in time order.",
    responses=_NOT_FOUND,
)
async def list_sentences(session_id: str) -> SentenceListResponse:
    session = _get_session_or_404(session_id)
    sentences = [
        SentenceInfo(
            index=i,
            start_time=s.start_time,
            end_time=s.end_time,
            text=s.combined_text,
            cue_ids=[cue.id for cue in s.segments],
        )
        for i, s in enumerate(session.controls.segmenter.get_available_sentences())
    ]
    return SentenceListResponse(session_id=session.id, sentences=sentences)


@app.post(
    "/sessions/{session_id}/save",
    response_model=SaveResponse,
    tags=["sessions"],
    summary="Save the session snapshot now",
    responses=_NOT_FOUND,
)
async def save_session(session_id: str) -> SaveResponse:
    session = _get_session_or_404(session_id)
    return SaveResponse(saved=await session.controls.save_state())


@app.delete(
    "/sessions/{session_id}",
    status_code=204,
    tags=["sessions"],
    summary="End a practice session",
    description="Save the session snapshot one last time and discard the session.",
    responses=_NOT_FOUND,
)
async def delete_session(session_id: str) -> Response:
    removed = await session_registry.remove_session(session_id)
    if not removed:
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Playback
# ---------------------------------------------------------------------------


@app.post(
    "/sessions/{session_id}/seek",
    response_model=SessionResponse,
    tags=["playback"],
    summary="Move the playback cursor",
    responses=_NOT_FOUND,
)
async def seek(session_id: str, request: SeekRequest) -> SessionResponse:
    session = _get_session_or_404(session_id)
    session.player.seek(request.time)
    return _session_to_response(session)


@app.post(
    "/sessions/{session_id}/navigate",
    response_model=NavigationResponse,
    tags=["playback"],
    summary="Previous / next / replay sentence",
    description=(
        "Resolve a navigation target through the fallback ladder (cue "
        "groups, sentences, raw cues, fixed steps) and seek to it."
    ),
    responses={
        **_NOT_FOUND,
        502: {"model": ErrorResponse, "description": "Player failed to seek"},
    },
)
async def navigate(session_id: str, request: NavigateRequest) -> NavigationResponse:
    session = _get_session_or_404(session_id)
    result = session.controls.navigate(request.direction.value)
    if result is None:
        raise HTTPException(status_code=502, detail="Navigation failed")
    return _navigation_to_response(result)


@app.post(
    "/sessions/{session_id}/speed",
    response_model=SpeedResponse,
    tags=["playback"],
    summary="Change playback speed",
    responses={
        **_NOT_FOUND,
        502: {"model": ErrorResponse, "description": "Player rejected the rate"},
    },
)
async def change_speed(session_id: str, request: SpeedRequest) -> SpeedResponse:
    session = _get_session_or_404(session_id)
    controls = session.controls
    if request.speed is not None:
        applied = controls.set_speed(request.speed)
    elif request.delta is not None:
        applied = controls.adjust_speed(request.delta)
    else:
        applied = controls.reset_speed()
    if applied is None:
        raise HTTPException(status_code=502, detail="Speed change failed")
    return SpeedResponse(speed=applied, available_speeds=controls.available_speeds())


# ---------------------------------------------------------------------------
# Endpoints: Loops
# ---------------------------------------------------------------------------


@app.post(
    "/sessions/{session_id}/markers/{action}",
    response_model=LoopActionResponse,
    tags=["loops"],
    summary="Set loop markers",
    description="'in' and 'out' capture the cursor; 'click' cycles IN, OUT, clear.",
    responses=_NOT_FOUND,
)
async def marker_action(session_id: str, action: MarkerAction) -> LoopActionResponse:
    controls = _get_session_or_404(session_id).controls
    if action is MarkerAction.mark_in:
        result = controls.set_mark_in()
    elif action is MarkerAction.mark_out:
        result = controls.set_mark_out()
    else:
        result = controls.click_marker_indicator()
    return _loop_to_response(result)


@app.post(
    "/sessions/{session_id}/loop/{action}",
    response_model=LoopActionResponse,
    tags=["loops"],
    summary="Apply, toggle, or clear the loop",
    description=(
        "'apply' loops the IN/OUT window, 'toggle' clears an active loop or "
        "starts one (markers or a quick ±5s window), 'clear' removes it."
    ),
    responses=_NOT_FOUND,
)
async def loop_action(session_id: str, action: LoopAction) -> LoopActionResponse:
    controls = _get_session_or_404(session_id).controls
    if action is LoopAction.apply:
        result = controls.apply_marker_loop()
    elif action is LoopAction.toggle:
        result = controls.toggle_loop()
    else:
        result = controls.clear_loop()
    return _loop_to_response(result)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness and readiness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__, sessions=len(session_registry))


def run_api(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Entry point for the cue-navigator-api console script."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
