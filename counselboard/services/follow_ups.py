"""
Follow-Up Tracker

Schedules and tracks the follow-up work a counselor commits to after a
session. A follow-up moves pending -> in_progress -> completed, and may be
reopened; completed_date is kept only while it is completed.
"""
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from counselboard.models.follow_up import (
    FOLLOW_UP_PRIORITIES,
    FOLLOW_UP_STATUSES,
    CounselingFollowUp,
)
from counselboard.repository.follow_up_store import FollowUpStore
from counselboard.repository.session_store import SessionStore
from counselboard.services.lifecycle import GuardedUpdateResult
from counselboard.services.session_time import parse_session_date

logger = logging.getLogger(__name__)

REQUIRED_FOLLOW_UP_FIELDS = ("follow_up_date", "assigned_to", "action_items")

OPTIONAL_FOLLOW_UP_FIELDS = ("id", "session_id", "priority", "status", "notes", "completed_date")


class FollowUpValidationError(ValueError):
    """Follow-up input is missing required data or is malformed"""

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = fields or []


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _parse_date(value: Any, field: str) -> date:
    try:
        return parse_session_date(value)
    except ValueError as e:
        raise FollowUpValidationError(str(e), fields=[field])


def _check_choice(value: str, choices, field: str) -> None:
    if value not in choices:
        raise FollowUpValidationError(
            f"Invalid {field}: {value}. Must be one of: {choices}", fields=[field]
        )


class FollowUpTracker:
    """Creates, updates and queries counseling follow-ups"""

    def __init__(
        self,
        store: FollowUpStore,
        session_store: SessionStore,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.session_store = session_store
        self.today = today

    def _resolve_completed_date(self, status: str, completed_date: Any) -> Optional[date]:
        if status != "completed":
            return None
        if _is_blank(completed_date):
            return self.today()
        return _parse_date(completed_date, "completed_date")

    async def _validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        missing = [name for name in REQUIRED_FOLLOW_UP_FIELDS if _is_blank(data.get(name))]
        if missing:
            raise FollowUpValidationError(
                f"Missing required fields: {', '.join(missing)}", fields=missing
            )

        values = {name: data[name] for name in REQUIRED_FOLLOW_UP_FIELDS}
        values.update(
            {name: data[name] for name in OPTIONAL_FOLLOW_UP_FIELDS if not _is_blank(data.get(name))}
        )
        values["follow_up_date"] = _parse_date(values["follow_up_date"], "follow_up_date")

        values.setdefault("priority", "medium")
        values.setdefault("status", "pending")
        _check_choice(values["priority"], FOLLOW_UP_PRIORITIES, "priority")
        _check_choice(values["status"], FOLLOW_UP_STATUSES, "status")

        values["completed_date"] = self._resolve_completed_date(
            values["status"], values.get("completed_date")
        )
        values.setdefault("session_id", None)
        values.setdefault("notes", None)

        if values["session_id"] is not None:
            if await self.session_store.get_session(values["session_id"]) is None:
                raise FollowUpValidationError(
                    f"Counseling session '{values['session_id']}' does not exist",
                    fields=["session_id"],
                )

        return values

    async def create_follow_up(self, data: Dict[str, Any]) -> CounselingFollowUp:
        """
        Schedule a follow-up.

        Args:
            data: follow_up_date, assigned_to and action_items are required;
                priority defaults to medium and status to pending

        Raises:
            FollowUpValidationError: Before any write, if input is incomplete
                or names a session that does not exist
        """
        values = await self._validate(data)
        follow_up = await self.store.insert_follow_up(values)

        logger.info(
            f"Scheduled follow-up {follow_up.id} for {follow_up.follow_up_date} "
            f"(priority={follow_up.priority}, session={follow_up.session_id})"
        )
        return follow_up

    async def get_follow_up(self, follow_up_id: str) -> Optional[CounselingFollowUp]:
        return await self.store.get_follow_up(follow_up_id)

    async def list_follow_ups(
        self,
        session_id: Optional[str] = None,
        status: Optional[str] = None,
        assigned_to: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> List[CounselingFollowUp]:
        if status is not None:
            _check_choice(status, FOLLOW_UP_STATUSES, "status")
        if priority is not None:
            _check_choice(priority, FOLLOW_UP_PRIORITIES, "priority")
        return await self.store.list_follow_ups(
            session_id=session_id, status=status, assigned_to=assigned_to, priority=priority
        )

    async def list_overdue(self, as_of: Optional[date] = None) -> List[CounselingFollowUp]:
        """Open follow-ups whose date has passed, most urgent first."""
        return await self.store.list_overdue(as_of or self.today())

    async def update_follow_up(self, follow_up_id: str, changes: Dict[str, Any]) -> GuardedUpdateResult:
        """
        Overwrite the given fields of a follow-up.

        Fields left out keep their stored value. The merged record is
        validated as a whole, so the completed_date rule applies here too.
        """
        existing = await self.store.get_follow_up(follow_up_id)
        if existing is None:
            return GuardedUpdateResult.NOT_FOUND

        merged = {
            "follow_up_date": existing.follow_up_date,
            "assigned_to": existing.assigned_to,
            "action_items": existing.action_items,
            "session_id": existing.session_id,
            "priority": existing.priority,
            "status": existing.status,
            "notes": existing.notes,
            "completed_date": existing.completed_date,
        }
        merged.update(changes)

        values = await self._validate(merged)
        values.pop("id", None)

        if await self.store.update_follow_up(follow_up_id, values) == 0:
            return GuardedUpdateResult.NOT_FOUND

        logger.info(f"Updated follow-up {follow_up_id}")
        return GuardedUpdateResult.APPLIED

    async def update_status(
        self,
        follow_up_id: str,
        status: str,
        completed_date: Optional[Any] = None,
    ) -> GuardedUpdateResult:
        """Move a follow-up to a new status; completing it stamps today unless a date is given."""
        if _is_blank(status):
            raise FollowUpValidationError("status is required", fields=["status"])
        _check_choice(status, FOLLOW_UP_STATUSES, "status")

        completed_date = self._resolve_completed_date(status, completed_date)
        if await self.store.update_status(follow_up_id, status, completed_date) == 0:
            return GuardedUpdateResult.NOT_FOUND

        logger.info(f"Follow-up {follow_up_id} is now {status}")
        return GuardedUpdateResult.APPLIED

    async def delete_follow_up(self, follow_up_id: str) -> GuardedUpdateResult:
        if await self.store.delete_follow_up(follow_up_id) == 0:
            return GuardedUpdateResult.NOT_FOUND

        logger.info(f"Deleted follow-up {follow_up_id}")
        return GuardedUpdateResult.APPLIED
