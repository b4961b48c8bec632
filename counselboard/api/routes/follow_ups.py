"""
Counseling Follow-Up API Endpoints

GET    /api/v1/counseling-sessions/follow-ups               - List follow-ups (optional filters)
GET    /api/v1/counseling-sessions/follow-ups/overdue       - Open follow-ups past their date
GET    /api/v1/counseling-sessions/follow-ups/{id}          - Follow-up detail
POST   /api/v1/counseling-sessions/follow-ups               - Schedule a follow-up
PUT    /api/v1/counseling-sessions/follow-ups/{id}          - Update a follow-up
PUT    /api/v1/counseling-sessions/follow-ups/{id}/status   - Change status
DELETE /api/v1/counseling-sessions/follow-ups/{id}          - Delete a follow-up

Session-scoped listing and creation live on the session routes.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, Field

from counselboard.api.dependencies import get_follow_ups
from counselboard.models.follow_up import CounselingFollowUp
from counselboard.services.follow_ups import FollowUpTracker, FollowUpValidationError
from counselboard.services.lifecycle import GuardedUpdateResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/counseling-sessions/follow-ups", tags=["follow-ups"])

Priority = Literal["low", "medium", "high", "urgent"]
FollowUpStatus = Literal["pending", "in_progress", "completed"]


# Pydantic models

class FollowUpCreateRequest(BaseModel):
    """Request body for scheduling a follow-up"""
    id: Optional[str] = Field(None, max_length=36)
    session_id: Optional[str] = None
    follow_up_date: date
    assigned_to: str
    priority: Priority = "medium"
    status: FollowUpStatus = "pending"
    action_items: str
    notes: Optional[str] = None
    completed_date: Optional[date] = None


class FollowUpUpdateRequest(BaseModel):
    """Fields to overwrite; omitted fields keep their value"""
    session_id: Optional[str] = None
    follow_up_date: Optional[date] = None
    assigned_to: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[FollowUpStatus] = None
    action_items: Optional[str] = None
    notes: Optional[str] = None
    completed_date: Optional[date] = None


class FollowUpStatusRequest(BaseModel):
    status: FollowUpStatus
    completed_date: Optional[date] = None


class CreateFollowUpResponse(BaseModel):
    success: bool
    id: str


class OperationResponse(BaseModel):
    success: bool


# Serialization

def serialize_follow_up(follow_up: CounselingFollowUp) -> Dict[str, Any]:
    data = {
        column.name: getattr(follow_up, column.name)
        for column in CounselingFollowUp.__table__.columns
    }
    for key, value in data.items():
        if isinstance(value, (date, datetime)):
            data[key] = value.isoformat()
    return data


def _not_found(follow_up_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Follow-up '{follow_up_id}' not found",
    )


# API Endpoints

@router.get("", response_model=List[Dict[str, Any]])
async def list_follow_ups(
    session_id: Optional[str] = Query(None, description="Only follow-ups of this session"),
    follow_up_status: Optional[FollowUpStatus] = Query(None, alias="status"),
    assigned_to: Optional[str] = Query(None),
    priority: Optional[Priority] = Query(None, description="Open follow-ups of this priority, earliest first"),
    tracker: FollowUpTracker = Depends(get_follow_ups),
) -> List[Dict[str, Any]]:
    """List follow-ups, latest date first. Filters combine with AND."""
    try:
        follow_ups = await tracker.list_follow_ups(
            session_id=session_id,
            status=follow_up_status,
            assigned_to=assigned_to,
            priority=priority,
        )
        return [serialize_follow_up(follow_up) for follow_up in follow_ups]

    except Exception as e:
        logger.error(f"Error listing follow-ups: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve follow-ups: {str(e)}"
        )


@router.get("/overdue", response_model=List[Dict[str, Any]])
async def list_overdue_follow_ups(
    as_of: Optional[date] = Query(None, description="Reference date (defaults to today)"),
    tracker: FollowUpTracker = Depends(get_follow_ups),
) -> List[Dict[str, Any]]:
    """Open follow-ups dated before today, urgent first and oldest first within a priority."""
    try:
        follow_ups = await tracker.list_overdue(as_of)
        return [serialize_follow_up(follow_up) for follow_up in follow_ups]

    except Exception as e:
        logger.error(f"Error listing overdue follow-ups: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve overdue follow-ups: {str(e)}"
        )


@router.get("/{follow_up_id}", response_model=Dict[str, Any])
async def get_follow_up(
    follow_up_id: str = Path(..., description="Follow-up id"),
    tracker: FollowUpTracker = Depends(get_follow_ups),
) -> Dict[str, Any]:
    follow_up = await tracker.get_follow_up(follow_up_id)
    if follow_up is None:
        raise _not_found(follow_up_id)
    return serialize_follow_up(follow_up)


@router.post("", response_model=CreateFollowUpResponse, status_code=status.HTTP_201_CREATED)
async def create_follow_up(
    request: FollowUpCreateRequest,
    tracker: FollowUpTracker = Depends(get_follow_ups),
) -> Dict[str, Any]:
    """
    Schedule a follow-up.

    Raises:
        400: Missing required data or unknown session
    """
    try:
        follow_up = await tracker.create_follow_up(request.model_dump(exclude_none=True))
    except FollowUpValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"success": True, "id": follow_up.id}


@router.put("/{follow_up_id}", response_model=OperationResponse)
async def update_follow_up(
    request: FollowUpUpdateRequest,
    follow_up_id: str = Path(..., description="Follow-up id"),
    tracker: FollowUpTracker = Depends(get_follow_ups),
) -> Dict[str, Any]:
    try:
        result = await tracker.update_follow_up(follow_up_id, request.model_dump(exclude_unset=True))
    except FollowUpValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if result is GuardedUpdateResult.NOT_FOUND:
        raise _not_found(follow_up_id)
    return {"success": True}


@router.put("/{follow_up_id}/status", response_model=OperationResponse)
async def update_follow_up_status(
    request: FollowUpStatusRequest,
    follow_up_id: str = Path(..., description="Follow-up id"),
    tracker: FollowUpTracker = Depends(get_follow_ups),
) -> Dict[str, Any]:
    """Change status; completing without a completed_date stamps today."""
    result = await tracker.update_status(follow_up_id, request.status, request.completed_date)
    if result is GuardedUpdateResult.NOT_FOUND:
        raise _not_found(follow_up_id)
    return {"success": True}


@router.delete("/{follow_up_id}", response_model=OperationResponse)
async def delete_follow_up(
    follow_up_id: str = Path(..., description="Follow-up id"),
    tracker: FollowUpTracker = Depends(get_follow_ups),
) -> Dict[str, Any]:
    result = await tracker.delete_follow_up(follow_up_id)
    if result is GuardedUpdateResult.NOT_FOUND:
        raise _not_found(follow_up_id)
    return {"success": True}
