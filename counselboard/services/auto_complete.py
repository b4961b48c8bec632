"""
Auto-Complete Sweeper

Force-closes ACTIVE sessions that have been open longer than their
inactivity threshold: 60 minutes, or 75 once an extension was granted.

Each tick is one read followed by one guarded update per overdue session.
A guarded update that changes no row means a manual completion got there
first; that is the expected outcome of the race, not an error.
"""
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from counselboard.config import AUTO_COMPLETE_THRESHOLD_MINUTES, EXTENDED_THRESHOLD_MINUTES
from counselboard.models.counseling_session import CounselingSession
from counselboard.repository.session_store import SessionStore
from counselboard.services.session_time import TIME_FORMAT, elapsed_minutes

logger = logging.getLogger(__name__)


def threshold_minutes(session: CounselingSession) -> int:
    """Inactivity threshold that applies to an ACTIVE session."""
    if session.extension_granted:
        return EXTENDED_THRESHOLD_MINUTES
    return AUTO_COMPLETE_THRESHOLD_MINUTES


def is_overdue(session: CounselingSession, now: datetime) -> bool:
    if session.completed:
        return False
    elapsed = elapsed_minutes(now, session.session_date, session.entry_time)
    return elapsed >= threshold_minutes(session)


class AutoCompleteSweeper:
    """Periodic closer of overdue sessions"""

    def __init__(self, store: SessionStore, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.clock = clock

    async def find_overdue_sessions(self, now: Optional[datetime] = None) -> List[CounselingSession]:
        now = now or self.clock()
        candidates = await self.store.find_active_sessions_started_by(now.date())
        return [session for session in candidates if is_overdue(session, now)]

    async def auto_complete_session(self, session_id: str, now: Optional[datetime] = None) -> bool:
        """
        Close one session automatically.

        Returns:
            True if this call closed it, False if it was already closed
        """
        now = now or self.clock()
        changes = await self.store.auto_complete_if_active(
            session_id, now.strftime(TIME_FORMAT), now.date()
        )
        if changes == 0:
            logger.debug(f"Auto-complete skipped for {session_id}: already completed")
            return False
        return True

    async def run_once(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Run a single sweep tick.

        Args:
            now: Wall-clock time to evaluate against (defaults to the clock)

        Returns:
            Summary dict with:
                - candidates: Overdue sessions found by the scan
                - auto_completed: Sessions closed by this tick
                - race_lost: Sessions closed concurrently by someone else
                - duration_ms: Tick duration
        """
        start_time = time.time()
        now = now or self.clock()

        overdue = await self.find_overdue_sessions(now)
        completed_ids = []
        race_lost = 0

        for session in overdue:
            if await self.auto_complete_session(session.id, now):
                completed_ids.append(session.id)
            else:
                race_lost += 1

        duration_ms = (time.time() - start_time) * 1000

        if completed_ids:
            logger.info(
                f"Auto-completed {len(completed_ids)} session(s) that exceeded their time limit: "
                f"{', '.join(completed_ids)}"
            )
        else:
            logger.debug(f"Auto-complete sweep found nothing to close ({duration_ms:.2f}ms)")

        return {
            "candidates": len(overdue),
            "auto_completed": len(completed_ids),
            "race_lost": race_lost,
            "completed_session_ids": completed_ids,
            "duration_ms": round(duration_ms, 2),
        }
