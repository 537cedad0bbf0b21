"""
FastAPI endpoints for the virtual laboratory.

This module exposes the practical catalog and the lab session lifecycle:
opening a practical, issuing apparatus commands, asking the lab guide and
completing or leaving the practical.
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from agents.guide.models import GuideReply
from agents.lab.apparatus import ApparatusSnapshot
from agents.lab.catalog import ExperimentInfo, list_experiments
from agents.lab.errors import (
    CompletionNotRecorded,
    ConfigurationMismatch,
    GuideBusy,
    InvalidCommand,
    LabError,
    SessionNotFound
)
from agents.lab.profile import CompletionEvent
from agents.lab.session import LabSession, LabSnapshot
from agents.lab.session_manager import LabSessionManager
from database import SqlProfileStore

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/lab", tags=["lab"])

# Global session manager, created on first use
_session_manager: Optional[LabSessionManager] = None
_cleanup_task: Optional[asyncio.Task] = None


def get_session_manager() -> LabSessionManager:
    """Dependency returning the process-wide session manager."""
    global _session_manager
    if _session_manager is None:
        _session_manager = LabSessionManager(profile_store=SqlProfileStore())
    return _session_manager


async def _sweep_inactive_sessions(interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        await get_session_manager().cleanup_inactive_sessions()


def start_session_cleanup() -> None:
    """Start the periodic sweep for abandoned sessions; called on application startup."""
    global _cleanup_task
    if _cleanup_task is None or _cleanup_task.done():
        interval = get_session_manager().settings.session_cleanup_interval
        _cleanup_task = asyncio.get_running_loop().create_task(_sweep_inactive_sessions(interval))
        logger.info(f"Sweeping for inactive lab sessions every {interval}s")


async def shutdown_session_manager() -> None:
    """Stop the sweep and close every open lab session; called on application shutdown."""
    global _session_manager, _cleanup_task
    if _cleanup_task is not None:
        _cleanup_task.cancel()
        try:
            await _cleanup_task
        except asyncio.CancelledError:
            pass
        _cleanup_task = None
    if _session_manager is not None:
        await _session_manager.shutdown()
        _session_manager = None


# Request/Response Models
class CreateSessionRequest(BaseModel):
    """Request model for opening a practical."""
    experiment_id: str = Field(..., description="Catalog id of the practical")
    student_name: Optional[str] = Field("Scientist", description="Name used in the guide greeting")


class SessionResponse(BaseModel):
    """Response model for a newly opened session."""
    session_id: str = Field(..., description="Session identifier")
    student_name: str = Field(..., description="Student the session belongs to")
    snapshot: LabSnapshot = Field(..., description="Initial session state")


class AirHoleRequest(BaseModel):
    """Request model for adjusting the burner air hole."""
    level: int = Field(..., description="Air hole level from 0 (closed) to 3 (fully open)")


class WeightRequest(BaseModel):
    """Request model for placing a standard mass on a pan."""
    side: str = Field(..., description="Pan to load: 'left' or 'right'")
    mass: int = Field(..., description="Mass in grams")


class SampleRequest(BaseModel):
    """Request model for dipping the thermometer into a sample."""
    sample_id: str = Field(..., description="Sample identifier, e.g. 'ice' or 'hot'")


class MessageRequest(BaseModel):
    """Request model for a question to the lab guide."""
    content: str = Field(..., description="Question text")


class BurnerResponse(BaseModel):
    is_lit: bool
    apparatus: ApparatusSnapshot


class WeightResponse(BaseModel):
    removed: Optional[int] = Field(None, description="Mass taken off by an undo, if any")
    apparatus: ApparatusSnapshot


class EndSessionResponse(BaseModel):
    session_id: str
    ended: bool


# Utility Functions
def _to_http_exception(error: LabError) -> HTTPException:
    """Translate a laboratory error into the matching HTTP status."""
    if isinstance(error, SessionNotFound):
        status_code = 404
    elif isinstance(error, CompletionNotRecorded):
        status_code = 503
    elif isinstance(error, (ConfigurationMismatch, GuideBusy)):
        status_code = 409
    elif isinstance(error, InvalidCommand):
        status_code = 400
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail=error.message)


def _require(manager: LabSessionManager, session_id: str) -> LabSession:
    try:
        return manager.require_session(session_id)
    except SessionNotFound as e:
        raise _to_http_exception(e)


# API Endpoints
@router.get("/experiments", response_model=List[ExperimentInfo])
async def get_experiments():
    """List the practicals a student can open."""
    return list_experiments()


@router.post("/sessions", response_model=SessionResponse)
async def create_session(
    request: CreateSessionRequest,
    manager: LabSessionManager = Depends(get_session_manager)
):
    """
    Open a practical.

    Starts the apparatus tick loop and seeds the conversation with the
    guide's greeting.
    """
    try:
        session = await manager.create_session(
            request.experiment_id,
            student_name=request.student_name or "Scientist"
        )
    except LabError as e:
        logger.warning(f"Could not open practical {request.experiment_id}: {e.message}")
        raise _to_http_exception(e)

    return SessionResponse(
        session_id=session.session_id,
        student_name=session.student_name,
        snapshot=session.snapshot()
    )


@router.get("/sessions/{session_id}", response_model=LabSnapshot)
async def get_session(
    session_id: str,
    manager: LabSessionManager = Depends(get_session_manager)
):
    """Current apparatus reading, conversation and typing indicator."""
    return _require(manager, session_id).snapshot()


@router.post("/sessions/{session_id}/burner/toggle", response_model=BurnerResponse)
async def toggle_burner(
    session_id: str,
    manager: LabSessionManager = Depends(get_session_manager)
):
    session = _require(manager, session_id)
    try:
        is_lit = session.toggle_burner()
    except LabError as e:
        raise _to_http_exception(e)
    return BurnerResponse(is_lit=is_lit, apparatus=session.apparatus.snapshot())


@router.post("/sessions/{session_id}/air-hole", response_model=ApparatusSnapshot)
async def set_air_hole(
    session_id: str,
    request: AirHoleRequest,
    manager: LabSessionManager = Depends(get_session_manager)
):
    session = _require(manager, session_id)
    try:
        session.set_air_hole(request.level)
    except LabError as e:
        raise _to_http_exception(e)
    return session.apparatus.snapshot()


@router.post("/sessions/{session_id}/weights", response_model=ApparatusSnapshot)
async def add_weight(
    session_id: str,
    request: WeightRequest,
    manager: LabSessionManager = Depends(get_session_manager)
):
    session = _require(manager, session_id)
    try:
        session.add_weight(request.side, request.mass)
    except LabError as e:
        raise _to_http_exception(e)
    return session.apparatus.snapshot()


@router.post("/sessions/{session_id}/weights/{side}/undo", response_model=WeightResponse)
async def undo_weight(
    session_id: str,
    side: str,
    manager: LabSessionManager = Depends(get_session_manager)
):
    """Take the most recently placed mass off a pan; an empty pan is left as is."""
    session = _require(manager, session_id)
    try:
        removed = session.undo_weight(side)
    except LabError as e:
        raise _to_http_exception(e)
    return WeightResponse(removed=removed, apparatus=session.apparatus.snapshot())


@router.delete("/sessions/{session_id}/weights", response_model=ApparatusSnapshot)
async def clear_weights(
    session_id: str,
    manager: LabSessionManager = Depends(get_session_manager)
):
    session = _require(manager, session_id)
    try:
        session.clear_weights()
    except LabError as e:
        raise _to_http_exception(e)
    return session.apparatus.snapshot()


@router.post("/sessions/{session_id}/sample", response_model=ApparatusSnapshot)
async def select_sample(
    session_id: str,
    request: SampleRequest,
    manager: LabSessionManager = Depends(get_session_manager)
):
    session = _require(manager, session_id)
    try:
        session.select_sample(request.sample_id)
    except LabError as e:
        raise _to_http_exception(e)
    return session.apparatus.snapshot()


@router.post("/sessions/{session_id}/messages", response_model=GuideReply)
async def ask_guide(
    session_id: str,
    request: MessageRequest,
    manager: LabSessionManager = Depends(get_session_manager)
):
    """
    Ask the lab guide a question.

    Always answers with one assistant reply; remote failures come back as an
    offline answer or an error reply rather than an HTTP error.
    """
    session = _require(manager, session_id)
    try:
        return await session.ask(request.content)
    except LabError as e:
        raise _to_http_exception(e)


@router.post("/sessions/{session_id}/complete", response_model=CompletionEvent)
async def complete_session(
    session_id: str,
    manager: LabSessionManager = Depends(get_session_manager)
):
    """Finish the practical and record its reward."""
    _require(manager, session_id)
    try:
        return await manager.complete_session(session_id)
    except LabError as e:
        raise _to_http_exception(e)


@router.delete("/sessions/{session_id}", response_model=EndSessionResponse)
async def end_session(
    session_id: str,
    manager: LabSessionManager = Depends(get_session_manager)
):
    """Leave the practical without completing it."""
    if not await manager.end_session(session_id):
        raise HTTPException(status_code=404, detail=f"Lab session {session_id} not found")
    return EndSessionResponse(session_id=session_id, ended=True)
