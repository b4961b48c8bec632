"""
Follow-Up Store

Persistence for counseling follow-ups. Writes return the affected row count
so callers can tell an unknown id apart from a successful change.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import case, delete, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from counselboard.models.follow_up import CounselingFollowUp

logger = logging.getLogger(__name__)

# Overdue work is ranked by urgency, not by the alphabetical order of the labels
PRIORITY_RANK = {"urgent": 4, "high": 3, "medium": 2, "low": 1}

FOLLOW_UP_COLUMNS = (
    "session_id",
    "follow_up_date",
    "assigned_to",
    "priority",
    "status",
    "action_items",
    "notes",
    "completed_date",
)

_priority_rank = case(PRIORITY_RANK, value=CounselingFollowUp.priority, else_=0)


class FollowUpStore:
    """Repository over the counseling_follow_ups table"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def insert_follow_up(self, values: Dict[str, Any]) -> CounselingFollowUp:
        async with self.session_factory() as db:
            async with db.begin():
                follow_up = CounselingFollowUp(**values)
                db.add(follow_up)

            follow_up_id = follow_up.id
            logger.debug(f"Inserted follow-up {follow_up_id}")

        return await self.get_follow_up(follow_up_id)

    async def get_follow_up(self, follow_up_id: str) -> Optional[CounselingFollowUp]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(CounselingFollowUp).where(CounselingFollowUp.id == follow_up_id)
            )
            return result.scalar_one_or_none()

    async def list_follow_ups(
        self,
        session_id: Optional[str] = None,
        status: Optional[str] = None,
        assigned_to: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> List[CounselingFollowUp]:
        """
        List follow-ups, latest follow-up date first.

        Filters combine with AND. Filtering by priority gives the open work
        queue instead: completed follow-ups are left out and the earliest
        date comes first.
        """
        query = select(CounselingFollowUp)
        order_by = [CounselingFollowUp.follow_up_date.desc()]

        if session_id is not None:
            query = query.where(CounselingFollowUp.session_id == session_id)
        if status is not None:
            query = query.where(CounselingFollowUp.status == status)
        if assigned_to is not None:
            query = query.where(CounselingFollowUp.assigned_to == assigned_to)
        if priority is not None:
            query = query.where(
                CounselingFollowUp.priority == priority,
                CounselingFollowUp.status != "completed",
            )
            order_by = [CounselingFollowUp.follow_up_date.asc()]

        async with self.session_factory() as db:
            result = await db.execute(query.order_by(*order_by, CounselingFollowUp.id))
            return list(result.scalars().all())

    async def list_overdue(self, as_of: date) -> List[CounselingFollowUp]:
        """Open follow-ups dated before as_of, most urgent first, then oldest first."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(CounselingFollowUp)
                .where(
                    CounselingFollowUp.status != "completed",
                    CounselingFollowUp.follow_up_date < as_of,
                )
                .order_by(
                    _priority_rank.desc(),
                    CounselingFollowUp.follow_up_date.asc(),
                    CounselingFollowUp.id,
                )
            )
            return list(result.scalars().all())

    async def update_follow_up(self, follow_up_id: str, values: Dict[str, Any]) -> int:
        unknown = set(values) - set(FOLLOW_UP_COLUMNS)
        if unknown:
            raise ValueError(f"Not a follow-up column: {sorted(unknown)}")

        stmt = (
            update(CounselingFollowUp)
            .where(CounselingFollowUp.id == follow_up_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(stmt)

    async def update_status(
        self, follow_up_id: str, status: str, completed_date: Optional[date]
    ) -> int:
        stmt = (
            update(CounselingFollowUp)
            .where(CounselingFollowUp.id == follow_up_id)
            .values(status=status, completed_date=completed_date)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(stmt)

    async def delete_follow_up(self, follow_up_id: str) -> int:
        stmt = delete(CounselingFollowUp).where(CounselingFollowUp.id == follow_up_id)
        return await self._execute_write(stmt)

    async def _execute_write(self, stmt) -> int:
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(stmt)
            return result.rowcount
