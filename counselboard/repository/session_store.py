"""
Session Store

Durable record of counseling sessions and their participant links. All
writes to the counseling tables go through this class; the lifecycle
controller and the auto-complete sweeper share one instance.

Completion writes are guarded updates: the UPDATE is conditioned on
``completed = false`` and the affected row count tells the caller whether
it won. No application-level locking is involved.
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, select, update, func
from sqlalchemy.ext.asyncio import async_sessionmaker

from counselboard.config import AUTO_COMPLETE_BANNER
from counselboard.models.counseling_session import CounselingSession
from counselboard.models.session_participant import SessionParticipant

logger = logging.getLogger(__name__)

# Columns a manual completion may write
COMPLETION_COLUMNS = (
    "exit_time",
    "exit_class_hour_id",
    "detailed_notes",
    "session_flow",
    "student_participation_level",
    "cooperation_level",
    "emotional_state",
    "physical_state",
    "communication_quality",
    "session_tags",
    "achieved_outcomes",
    "follow_up_needed",
    "follow_up_plan",
    "action_items",
)

_NEWEST_FIRST = (CounselingSession.session_date.desc(), CounselingSession.entry_time.desc())


class SessionStore:
    """Repository over the counseling_sessions and participant tables"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def insert_session(
        self,
        values: Dict[str, Any],
        participant_ids: Iterable[str],
    ) -> CounselingSession:
        """
        Insert a session and all of its participant links in one transaction.

        Any failure rolls back the whole unit, so a partially created
        session is never visible.
        """
        async with self.session_factory() as db:
            async with db.begin():
                session_obj = CounselingSession(
                    **values,
                    completed=False,
                    auto_completed=False,
                    extension_granted=False,
                )
                session_obj.participants = [
                    SessionParticipant(student_id=student_id) for student_id in participant_ids
                ]
                db.add(session_obj)

            session_id = session_obj.id
            logger.debug(
                f"Inserted session {session_id} with {len(session_obj.participants)} participant(s)"
            )

        # Re-read so server-side defaults (created_at/updated_at) are loaded
        return await self.get_session(session_id)

    async def get_session(self, session_id: str) -> Optional[CounselingSession]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(CounselingSession).where(CounselingSession.id == session_id)
            )
            return result.scalar_one_or_none()

    async def list_sessions(self, active_only: bool = False) -> List[CounselingSession]:
        query = select(CounselingSession)
        if active_only:
            query = query.where(CounselingSession.completed.is_(False))

        async with self.session_factory() as db:
            result = await db.execute(query.order_by(*_NEWEST_FIRST))
            return list(result.scalars().all())

    async def find_active_sessions_started_by(self, as_of: date) -> List[CounselingSession]:
        """Active sessions dated on or before as_of (candidates for auto-completion)."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(CounselingSession)
                .where(
                    CounselingSession.completed.is_(False),
                    CounselingSession.session_date <= as_of,
                )
                .order_by(CounselingSession.session_date, CounselingSession.entry_time)
            )
            return list(result.scalars().all())

    async def complete_if_active(self, session_id: str, values: Dict[str, Any]) -> int:
        """
        Guarded manual completion.

        Returns:
            Number of rows changed: 1 if this call closed the session, 0 if
            it was already closed or does not exist
        """
        unknown = set(values) - set(COMPLETION_COLUMNS)
        if unknown:
            raise ValueError(f"Not a completion column: {sorted(unknown)}")

        stmt = (
            update(CounselingSession)
            .where(
                CounselingSession.id == session_id,
                CounselingSession.completed.is_(False),
            )
            .values(**values, completed=True, auto_completed=False)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(stmt)

    async def auto_complete_if_active(self, session_id: str, exit_time: str, exit_date: date) -> int:
        """
        Guarded automatic completion.

        Records the exit day alongside the time, since a delayed sweep can
        close a session days after it started. Appends the audit banner to
        detailed_notes. Returns 0 when a manual completion already closed
        the session.
        """
        stmt = (
            update(CounselingSession)
            .where(
                CounselingSession.id == session_id,
                CounselingSession.completed.is_(False),
            )
            .values(
                exit_time=exit_time,
                exit_date=exit_date,
                exit_class_hour_id=None,
                completed=True,
                auto_completed=True,
                detailed_notes=func.coalesce(CounselingSession.detailed_notes, "")
                + "\n\n"
                + AUTO_COMPLETE_BANNER,
            )
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(stmt)

    async def grant_extension(self, session_id: str) -> int:
        """Set extension_granted unconditionally. Returns 0 only for an unknown id."""
        stmt = (
            update(CounselingSession)
            .where(CounselingSession.id == session_id)
            .values(extension_granted=True)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(stmt)

    async def delete_session(self, session_id: str) -> int:
        """Delete a session and its participant links regardless of state."""
        async with self.session_factory() as db:
            async with db.begin():
                await db.execute(
                    delete(SessionParticipant).where(SessionParticipant.session_id == session_id)
                )
                result = await db.execute(
                    delete(CounselingSession).where(CounselingSession.id == session_id)
                )
            return result.rowcount

    async def _execute_write(self, stmt) -> int:
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(stmt)
            return result.rowcount
