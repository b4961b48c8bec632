"""
Filtered Session Queries

Builds list-view queries from any subset of the supported filters. Each
filter contributes one (clause, parameters) pair with bound parameters;
the pairs are AND-joined in order. Filter values never reach the SQL text.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, field_validator
from sqlalchemy import and_, bindparam, func, select
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from counselboard.models.counseling_session import CounselingSession
from counselboard.models.session_participant import SessionParticipant
from counselboard.models.student import Student

logger = logging.getLogger(__name__)

Predicate = Tuple[ColumnElement, Dict[str, Any]]

LIKE_ESCAPE = "\\"


class SessionFilters(BaseModel):
    """Optional list-view filters; unset or blank values are ignored"""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    topic: Optional[str] = None
    class_name: Optional[str] = None
    status: Literal["completed", "active", "all"] = "all"
    participant_type: Optional[str] = None
    session_type: Literal["individual", "group", "all"] = "all"
    session_mode: Optional[str] = None
    student_id: Optional[str] = None

    @field_validator("topic", "class_name", "participant_type", "session_mode", "student_id")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def needs_participant_join(self) -> bool:
        return bool(self.class_name or self.student_id)


def escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def build_predicates(filters: SessionFilters) -> List[Predicate]:
    """
    Translate filters into ordered (clause, parameters) pairs.

    Clauses reference bound parameters by name; the matching values are in
    the pair's parameter dict.
    """
    predicates: List[Predicate] = []

    if filters.start_date:
        predicates.append((
            CounselingSession.session_date >= bindparam("start_date", type_=CounselingSession.session_date.type),
            {"start_date": filters.start_date},
        ))

    if filters.end_date:
        predicates.append((
            CounselingSession.session_date <= bindparam("end_date", type_=CounselingSession.session_date.type),
            {"end_date": filters.end_date},
        ))

    if filters.topic:
        predicates.append((
            func.lower(CounselingSession.topic).like(
                func.lower(bindparam("topic")), escape=LIKE_ESCAPE
            ),
            {"topic": f"%{escape_like(filters.topic)}%"},
        ))

    if filters.class_name:
        predicates.append((Student.class_name == bindparam("class_name"), {"class_name": filters.class_name}))

    if filters.status == "completed":
        predicates.append((CounselingSession.completed.is_(True), {}))
    elif filters.status == "active":
        predicates.append((CounselingSession.completed.is_(False), {}))

    if filters.participant_type:
        predicates.append((
            CounselingSession.participant_type == bindparam("participant_type"),
            {"participant_type": filters.participant_type},
        ))

    if filters.session_type != "all":
        predicates.append((
            CounselingSession.session_type == bindparam("session_type"),
            {"session_type": filters.session_type},
        ))

    if filters.session_mode:
        predicates.append((
            CounselingSession.session_mode == bindparam("session_mode"),
            {"session_mode": filters.session_mode},
        ))

    if filters.student_id:
        predicates.append((
            SessionParticipant.student_id == bindparam("student_id"),
            {"student_id": filters.student_id},
        ))

    return predicates


class FilteredQueryEngine:
    """Read-only list queries over counseling sessions"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    def build_query(self, filters: SessionFilters):
        """
        Compose the select statement and its parameters.

        Returns:
            Tuple of (statement, parameters)
        """
        query = select(CounselingSession)

        if filters.needs_participant_join:
            # One row per session even when several participants match
            query = (
                query.outerjoin(SessionParticipant, SessionParticipant.session_id == CounselingSession.id)
                .outerjoin(Student, Student.id == SessionParticipant.student_id)
                .distinct()
            )

        predicates = build_predicates(filters)
        params: Dict[str, Any] = {}
        if predicates:
            query = query.where(and_(*(clause for clause, _ in predicates)))
            for _, clause_params in predicates:
                params.update(clause_params)

        query = query.order_by(CounselingSession.session_date.desc(), CounselingSession.entry_time.desc())
        return query, params

    async def get_filtered_sessions(self, filters: Optional[SessionFilters] = None) -> List[CounselingSession]:
        filters = filters or SessionFilters()
        query, params = self.build_query(filters)

        async with self.session_factory() as db:
            result = await db.execute(query, params)
            sessions = list(result.scalars().unique().all())

        logger.debug(f"Filtered session query returned {len(sessions)} session(s) for {filters}")
        return sessions
