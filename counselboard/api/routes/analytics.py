"""
Counseling Analytics API Endpoints

Provides aggregated session data for dashboard charts and the
early-warning collaborator.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel

from counselboard.api.dependencies import get_analytics
from counselboard.services.analytics import AnalyticsAggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


# Pydantic models

class OverallStatsResponse(BaseModel):
    """Dashboard overview counters"""
    total_sessions: int
    active_sessions: int
    completed_sessions: int
    month_sessions: int
    week_sessions: int
    today_sessions: int
    avg_duration: float
    max_duration: int
    min_duration: int
    individual_percentage: float
    group_percentage: float


class TimeSeriesPoint(BaseModel):
    date: str
    count: int
    completed: int
    active: int


class TopicAnalysis(BaseModel):
    topic: str
    count: int
    percentage: float
    avg_duration: float


class ParticipantTypeAnalysis(BaseModel):
    type: str
    count: int
    percentage: float


class ClassAnalysis(BaseModel):
    class_name: str
    count: int
    percentage: float


class SessionModeAnalysis(BaseModel):
    mode: str
    count: int
    percentage: float


class SessionHistoryEntry(BaseModel):
    session_id: str
    session_date: str
    topic: str
    session_mode: str
    duration: int


class StudentSessionStatsResponse(BaseModel):
    """Per-student counseling rollup"""
    student_id: str
    total_sessions: int
    last_session_date: Optional[str]
    topics: List[str]
    history: List[SessionHistoryEntry]


# API Endpoints

@router.get("/overview", response_model=OverallStatsResponse)
async def get_overview(
    analytics: AnalyticsAggregator = Depends(get_analytics),
) -> Dict[str, Any]:
    """
    Get overall session counts and durations.

    Durations are in minutes and cover completed sessions only.
    """
    try:
        return await analytics.get_overall_stats()

    except Exception as e:
        logger.error(f"Error getting analytics overview: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve analytics overview: {str(e)}"
        )


@router.get("/time-series", response_model=List[TimeSeriesPoint])
async def get_time_series(
    period: Literal["daily", "weekly", "monthly"] = Query("daily"),
    start_date: Optional[date] = Query(None, description="First day (inclusive), defaults to 30 days ago"),
    end_date: Optional[date] = Query(None, description="Last day (inclusive), defaults to today"),
    analytics: AnalyticsAggregator = Depends(get_analytics),
) -> List[Dict[str, Any]]:
    """
    Get session counts over time.

    Daily series contain every day of the range, zero-filled. Weekly and
    monthly series only contain buckets that have sessions.
    """
    end_date = end_date or datetime.now().date()
    start_date = start_date or end_date - timedelta(days=30)

    try:
        return await analytics.get_time_series_data(period, start_date, end_date)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error getting time series ({period}): {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve time series: {str(e)}"
        )


@router.get("/topics", response_model=List[TopicAnalysis])
async def get_topics(
    limit: int = Query(10, ge=1, le=100),
    analytics: AnalyticsAggregator = Depends(get_analytics),
) -> List[Dict[str, Any]]:
    """Most frequent session topics."""
    try:
        return await analytics.get_topic_analysis(limit=limit)

    except Exception as e:
        logger.error(f"Error getting topic analysis: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to retrieve topic analysis: {str(e)}")


@router.get("/participants", response_model=List[ParticipantTypeAnalysis])
async def get_participants(
    analytics: AnalyticsAggregator = Depends(get_analytics),
) -> List[Dict[str, Any]]:
    try:
        return await analytics.get_participant_type_analysis()

    except Exception as e:
        logger.error(f"Error getting participant type analysis: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to retrieve participant analysis: {str(e)}")


@router.get("/classes", response_model=List[ClassAnalysis])
async def get_classes(
    analytics: AnalyticsAggregator = Depends(get_analytics),
) -> List[Dict[str, Any]]:
    try:
        return await analytics.get_class_analysis()

    except Exception as e:
        logger.error(f"Error getting class analysis: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to retrieve class analysis: {str(e)}")


@router.get("/modes", response_model=List[SessionModeAnalysis])
async def get_modes(
    analytics: AnalyticsAggregator = Depends(get_analytics),
) -> List[Dict[str, Any]]:
    try:
        return await analytics.get_session_mode_analysis()

    except Exception as e:
        logger.error(f"Error getting session mode analysis: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to retrieve session mode analysis: {str(e)}")


@router.get("/students/{student_id}", response_model=StudentSessionStatsResponse)
async def get_student_stats(
    student_id: str = Path(..., description="Student id"),
    analytics: AnalyticsAggregator = Depends(get_analytics),
) -> Dict[str, Any]:
    """
    Get a student's counseling history.

    Students without sessions get zero counts rather than a 404, since the
    student directory is owned elsewhere.
    """
    try:
        return await analytics.get_student_session_stats(student_id)

    except Exception as e:
        logger.error(f"Error getting session stats for student {student_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to retrieve student session stats: {str(e)}")
