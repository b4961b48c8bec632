"""
Counseling Session API Endpoints

GET    /api/v1/counseling-sessions                 - List sessions (optional filters)
GET    /api/v1/counseling-sessions/active          - List ACTIVE sessions
GET    /api/v1/counseling-sessions/{id}            - Session detail
POST   /api/v1/counseling-sessions                 - Start a session
PUT    /api/v1/counseling-sessions/{id}/complete   - Complete a session
PUT    /api/v1/counseling-sessions/{id}/extend     - Grant the time extension
DELETE /api/v1/counseling-sessions/{id}            - Delete a session
POST   /api/v1/counseling-sessions/auto-complete   - Run one auto-complete sweep now
GET    /api/v1/counseling-sessions/{id}/follow-ups - Follow-ups of a session
POST   /api/v1/counseling-sessions/{id}/follow-ups - Schedule a follow-up for a session
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, status
from pydantic import BaseModel, Field

from counselboard.api.dependencies import (
    get_follow_ups,
    get_lifecycle,
    get_query_engine,
    get_sweeper,
)
from counselboard.api.routes.follow_ups import (
    CreateFollowUpResponse,
    FollowUpCreateRequest,
    serialize_follow_up,
)
from counselboard.models.counseling_session import CounselingSession
from counselboard.services.auto_complete import AutoCompleteSweeper
from counselboard.services.follow_ups import FollowUpTracker, FollowUpValidationError
from counselboard.services.lifecycle import (
    EVALUATION_FIELDS,
    GuardedUpdateResult,
    LifecycleController,
    SessionValidationError,
)
from counselboard.services.session_query import FilteredQueryEngine, SessionFilters
from counselboard.services.session_time import duration_minutes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/counseling-sessions", tags=["counseling-sessions"])

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# Pydantic models

class SessionStartRequest(BaseModel):
    """Request body for starting a session"""
    id: Optional[str] = Field(None, max_length=36)
    session_type: Literal["individual", "group"]
    group_name: Optional[str] = None
    counselor_id: str
    session_date: date
    entry_time: str = Field(..., pattern=TIME_PATTERN)
    entry_class_hour_id: Optional[int] = None
    topic: str
    participant_type: str
    relationship_type: Optional[str] = None
    other_participants: Optional[str] = None
    parent_name: Optional[str] = None
    parent_relationship: Optional[str] = None
    teacher_name: Optional[str] = None
    teacher_branch: Optional[str] = None
    other_participant_description: Optional[str] = None
    session_mode: Literal["in_person", "phone", "online"]
    session_location: str
    discipline_status: Optional[str] = None
    institutional_cooperation: Optional[str] = None
    session_details: Optional[str] = None
    participant_ids: List[str] = Field(default_factory=list)


class ActionItem(BaseModel):
    """Follow-up action recorded at completion"""
    id: str
    description: str
    assigned_to: Optional[str] = None
    due_date: Optional[date] = None
    priority: Optional[Literal["low", "medium", "high"]] = None
    completed: bool = False


class SessionCompleteRequest(BaseModel):
    """Request body for completing a session"""
    exit_time: str = Field(..., pattern=TIME_PATTERN)
    exit_class_hour_id: Optional[int] = None
    detailed_notes: Optional[str] = None
    session_flow: Optional[Literal["very_positive", "positive", "neutral", "problematic", "crisis"]] = None
    student_participation_level: Optional[
        Literal["very_active", "active", "passive", "resistant", "withdrawn"]
    ] = None
    cooperation_level: Optional[int] = Field(None, ge=1, le=5)
    emotional_state: Optional[Literal["calm", "anxious", "sad", "angry", "happy", "mixed", "other"]] = None
    physical_state: Optional[Literal["normal", "tired", "restless", "agitated"]] = None
    communication_quality: Optional[Literal["open", "reserved", "selective", "closed"]] = None
    session_tags: Optional[List[str]] = None
    achieved_outcomes: Optional[str] = None
    follow_up_needed: bool = False
    follow_up_plan: Optional[str] = None
    action_items: Optional[List[ActionItem]] = None


class StartSessionResponse(BaseModel):
    success: bool
    id: str


class OperationResponse(BaseModel):
    success: bool


class AutoCompleteResponse(BaseModel):
    """Summary of one sweep tick"""
    success: bool
    completed_count: int
    race_lost: int
    completed_session_ids: List[str]
    duration_ms: float


# Serialization

def serialize_session(session: CounselingSession) -> Dict[str, Any]:
    """Session row plus derived state, duration and participant details."""
    data = {column.name: getattr(session, column.name) for column in CounselingSession.__table__.columns}

    for key, value in data.items():
        if isinstance(value, (date, datetime)):
            data[key] = value.isoformat()

    data["state"] = session.state.value
    data["duration"] = duration_minutes(
        session.session_date, session.entry_time, session.exit_time, session.exit_date
    )
    data["participants"] = [
        {
            "student_id": participant.student_id,
            "name": participant.student.name if participant.student else None,
            "class_name": participant.student.class_name if participant.student else None,
        }
        for participant in session.participants
    ]
    return data


def _not_found(session_id: str, detail: Optional[str] = None) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail or f"Counseling session '{session_id}' not found",
    )


# API Endpoints

@router.get("", response_model=List[Dict[str, Any]])
async def list_sessions(
    filters: SessionFilters = Depends(),
    query_engine: FilteredQueryEngine = Depends(get_query_engine),
) -> List[Dict[str, Any]]:
    """
    List counseling sessions, newest first.

    All filters are optional and combined with AND. Class and student
    filters match through the participant links; a group session is still
    returned once.
    """
    try:
        sessions = await query_engine.get_filtered_sessions(filters)
        return [serialize_session(session) for session in sessions]

    except Exception as e:
        logger.error(f"Error listing counseling sessions: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve counseling sessions: {str(e)}"
        )


@router.get("/active", response_model=List[Dict[str, Any]])
async def list_active_sessions(
    lifecycle: LifecycleController = Depends(get_lifecycle),
) -> List[Dict[str, Any]]:
    """List sessions that are still open."""
    try:
        sessions = await lifecycle.list_active_sessions()
        return [serialize_session(session) for session in sessions]

    except Exception as e:
        logger.error(f"Error listing active counseling sessions: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve active counseling sessions: {str(e)}"
        )


@router.post("/auto-complete", response_model=AutoCompleteResponse)
async def run_auto_complete(
    sweeper: AutoCompleteSweeper = Depends(get_sweeper),
) -> Dict[str, Any]:
    """Run one auto-complete sweep immediately instead of waiting for the scheduler."""
    try:
        summary = await sweeper.run_once()
        return {
            "success": True,
            "completed_count": summary["auto_completed"],
            "race_lost": summary["race_lost"],
            "completed_session_ids": summary["completed_session_ids"],
            "duration_ms": summary["duration_ms"],
        }

    except Exception as e:
        logger.error(f"Error auto-completing counseling sessions: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Auto-complete failed: {str(e)}"
        )


@router.get("/{session_id}", response_model=Dict[str, Any])
async def get_session(
    session_id: str = Path(..., description="Counseling session id"),
    lifecycle: LifecycleController = Depends(get_lifecycle),
) -> Dict[str, Any]:
    """Get one session with its participants."""
    session = await lifecycle.get_session(session_id)
    if session is None:
        raise _not_found(session_id)
    return serialize_session(session)


@router.post("", response_model=StartSessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    request: SessionStartRequest,
    lifecycle: LifecycleController = Depends(get_lifecycle),
) -> Dict[str, Any]:
    """
    Start a counseling session.

    The session and all participant links are stored in one transaction.

    Raises:
        400: Missing required data or no participants
    """
    data = request.model_dump(exclude={"participant_ids"}, exclude_none=True)

    try:
        session = await lifecycle.start_session(data, request.participant_ids)
    except SessionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"success": True, "id": session.id}


@router.put("/{session_id}/complete", response_model=OperationResponse)
async def complete_session(
    request: SessionCompleteRequest,
    session_id: str = Path(..., description="Counseling session id"),
    lifecycle: LifecycleController = Depends(get_lifecycle),
) -> Dict[str, Any]:
    """
    Complete an active session with its post-session evaluation.

    Raises:
        404: Session does not exist or was already completed
    """
    payload = request.model_dump(mode="json", exclude_none=True)
    exit_fields = {
        "exit_time": payload.pop("exit_time"),
        "exit_class_hour_id": payload.pop("exit_class_hour_id", None),
    }
    evaluation_fields = {key: value for key, value in payload.items() if key in EVALUATION_FIELDS}

    try:
        result = await lifecycle.complete_session(session_id, exit_fields, evaluation_fields)
    except SessionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if result is GuardedUpdateResult.ALREADY_COMPLETED_OR_NOT_FOUND:
        raise _not_found(
            session_id,
            detail=f"Counseling session '{session_id}' not found or already completed",
        )

    return {"success": True}


@router.put("/{session_id}/extend", response_model=OperationResponse)
async def extend_session(
    session_id: str = Path(..., description="Counseling session id"),
    lifecycle: LifecycleController = Depends(get_lifecycle),
) -> Dict[str, Any]:
    """Raise the session's auto-complete threshold from 60 to 75 minutes."""
    result = await lifecycle.extend_session(session_id)
    if result is GuardedUpdateResult.NOT_FOUND:
        raise _not_found(session_id)
    return {"success": True}


@router.delete("/{session_id}", response_model=OperationResponse)
async def delete_session(
    session_id: str = Path(..., description="Counseling session id"),
    lifecycle: LifecycleController = Depends(get_lifecycle),
) -> Dict[str, Any]:
    """Delete a session and its participant links, whatever its state."""
    result = await lifecycle.delete_session(session_id)
    if result is GuardedUpdateResult.NOT_FOUND:
        raise _not_found(session_id)
    return {"success": True}


@router.get("/{session_id}/follow-ups", response_model=List[Dict[str, Any]])
async def list_session_follow_ups(
    session_id: str = Path(..., description="Counseling session id"),
    lifecycle: LifecycleController = Depends(get_lifecycle),
    tracker: FollowUpTracker = Depends(get_follow_ups),
) -> List[Dict[str, Any]]:
    """Follow-ups scheduled for one session, latest date first."""
    if await lifecycle.get_session(session_id) is None:
        raise _not_found(session_id)

    follow_ups = await tracker.list_follow_ups(session_id=session_id)
    return [serialize_follow_up(follow_up) for follow_up in follow_ups]


@router.post(
    "/{session_id}/follow-ups",
    response_model=CreateFollowUpResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session_follow_up(
    request: FollowUpCreateRequest,
    session_id: str = Path(..., description="Counseling session id"),
    lifecycle: LifecycleController = Depends(get_lifecycle),
    tracker: FollowUpTracker = Depends(get_follow_ups),
) -> Dict[str, Any]:
    """
    Schedule a follow-up for a session.

    Raises:
        404: Session does not exist
        400: Missing required follow-up data
    """
    if await lifecycle.get_session(session_id) is None:
        raise _not_found(session_id)

    data = request.model_dump(exclude_none=True)
    data["session_id"] = session_id

    try:
        follow_up = await tracker.create_follow_up(data)
    except FollowUpValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"success": True, "id": follow_up.id}
