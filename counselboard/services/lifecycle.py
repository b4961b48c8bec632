"""
Session Lifecycle Controller

Starts, completes, extends and deletes counseling sessions.

State machine:
    ACTIVE -> COMPLETED       (complete_session)
    ACTIVE -> AUTO_COMPLETED  (auto-complete sweep)

Both completed states are terminal. extension_granted only changes which
inactivity threshold the sweeper applies while the session is ACTIVE.
"""
import enum
import logging
from typing import Any, Dict, Iterable, List, Optional

from counselboard.models.counseling_session import CounselingSession
from counselboard.repository.session_store import SessionStore
from counselboard.services.session_time import normalize_time_of_day, parse_session_date

logger = logging.getLogger(__name__)

SESSION_TYPES = ("individual", "group")

REQUIRED_START_FIELDS = (
    "counselor_id",
    "session_type",
    "session_date",
    "entry_time",
    "topic",
    "participant_type",
    "session_mode",
    "session_location",
)

OPTIONAL_START_FIELDS = (
    "id",
    "group_name",
    "relationship_type",
    "entry_class_hour_id",
    "other_participants",
    "parent_name",
    "parent_relationship",
    "teacher_name",
    "teacher_branch",
    "other_participant_description",
    "discipline_status",
    "institutional_cooperation",
    "session_details",
)

EVALUATION_FIELDS = (
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


class SessionValidationError(ValueError):
    """Start or completion input is missing required data or is malformed"""

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = fields or []


class GuardedUpdateResult(str, enum.Enum):
    """Outcome of a conditional write"""

    APPLIED = "applied"
    ALREADY_COMPLETED_OR_NOT_FOUND = "already_completed_or_not_found"
    NOT_FOUND = "not_found"

    @property
    def applied(self) -> bool:
        return self is GuardedUpdateResult.APPLIED


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _unique_ids(participant_ids: Iterable[str]) -> List[str]:
    seen = []
    for student_id in participant_ids or []:
        if _is_blank(student_id):
            continue
        student_id = str(student_id).strip()
        if student_id not in seen:
            seen.append(student_id)
    return seen


class LifecycleController:
    """
    Mutates session state under the lifecycle's preconditions.

    All methods are single-call operations; none of them wait on another
    writer. Concurrent closes are arbitrated by the store's guarded update.
    """

    def __init__(self, store: SessionStore):
        self.store = store

    def _validate_start(self, data: Dict[str, Any], participant_ids: List[str]) -> Dict[str, Any]:
        missing = [name for name in REQUIRED_START_FIELDS if _is_blank(data.get(name))]
        if missing:
            raise SessionValidationError(
                f"Missing required fields: {', '.join(missing)}", fields=missing
            )

        if not participant_ids:
            raise SessionValidationError(
                "At least one participant is required", fields=["participant_ids"]
            )

        session_type = data["session_type"]
        if session_type not in SESSION_TYPES:
            raise SessionValidationError(
                f"Invalid session_type: {session_type}. Must be one of: {SESSION_TYPES}",
                fields=["session_type"],
            )

        if session_type == "group" and _is_blank(data.get("group_name")):
            raise SessionValidationError(
                "group_name is required for group sessions", fields=["group_name"]
            )

        if session_type == "individual" and len(participant_ids) != 1:
            raise SessionValidationError(
                f"Individual sessions take exactly one participant, got {len(participant_ids)}",
                fields=["participant_ids"],
            )

        values = {name: data[name] for name in REQUIRED_START_FIELDS}
        values.update(
            {name: data[name] for name in OPTIONAL_START_FIELDS if not _is_blank(data.get(name))}
        )

        try:
            values["session_date"] = parse_session_date(data["session_date"])
        except ValueError as e:
            raise SessionValidationError(str(e), fields=["session_date"])

        try:
            values["entry_time"] = normalize_time_of_day(data["entry_time"])
        except ValueError as e:
            raise SessionValidationError(str(e), fields=["entry_time"])

        if session_type == "individual":
            values.pop("group_name", None)

        return values

    async def start_session(
        self,
        data: Dict[str, Any],
        participant_ids: Iterable[str],
    ) -> CounselingSession:
        """
        Open a new ACTIVE session with its participants.

        Args:
            data: Session fields (see REQUIRED_START_FIELDS / OPTIONAL_START_FIELDS)
            participant_ids: Student ids; duplicates collapse to one link

        Returns:
            The stored session with participants loaded

        Raises:
            SessionValidationError: Before any write, if input is incomplete
        """
        participant_ids = _unique_ids(participant_ids)
        values = self._validate_start(data, participant_ids)

        session_obj = await self.store.insert_session(values, participant_ids)

        logger.info(
            f"Started {session_obj.session_type} session {session_obj.id} "
            f"({len(participant_ids)} participant(s), topic={session_obj.topic!r})"
        )
        return session_obj

    async def complete_session(
        self,
        session_id: str,
        exit_fields: Dict[str, Any],
        evaluation_fields: Optional[Dict[str, Any]] = None,
    ) -> GuardedUpdateResult:
        """
        Close an ACTIVE session manually.

        Args:
            session_id: Session to close
            exit_fields: exit_time (HH:MM, required) and optional exit_class_hour_id
            evaluation_fields: Post-session evaluation (see EVALUATION_FIELDS)

        Returns:
            APPLIED, or ALREADY_COMPLETED_OR_NOT_FOUND when the guarded
            update matched no row (closed earlier, possibly by the sweeper)

        Raises:
            SessionValidationError: If exit_time is missing or malformed
        """
        exit_time = exit_fields.get("exit_time")
        if _is_blank(exit_time):
            raise SessionValidationError("exit_time is required", fields=["exit_time"])
        try:
            exit_time = normalize_time_of_day(exit_time)
        except ValueError as e:
            raise SessionValidationError(str(e), fields=["exit_time"])

        values: Dict[str, Any] = {
            "exit_time": exit_time,
            "exit_class_hour_id": exit_fields.get("exit_class_hour_id"),
        }

        evaluation_fields = evaluation_fields or {}
        unknown = sorted(set(evaluation_fields) - set(EVALUATION_FIELDS))
        if unknown:
            raise SessionValidationError(
                f"Unknown evaluation fields: {', '.join(unknown)}", fields=unknown
            )
        values.update(evaluation_fields)
        values["follow_up_needed"] = bool(evaluation_fields.get("follow_up_needed", False))

        changes = await self.store.complete_if_active(session_id, values)
        if changes == 0:
            logger.info(f"Session {session_id} not completed: already closed or not found")
            return GuardedUpdateResult.ALREADY_COMPLETED_OR_NOT_FOUND

        logger.info(f"Completed session {session_id} at {exit_time}")
        return GuardedUpdateResult.APPLIED

    async def extend_session(self, session_id: str) -> GuardedUpdateResult:
        """Grant the one-time extension (idempotent)."""
        changes = await self.store.grant_extension(session_id)
        if changes == 0:
            return GuardedUpdateResult.NOT_FOUND

        logger.info(f"Extension granted for session {session_id}")
        return GuardedUpdateResult.APPLIED

    async def delete_session(self, session_id: str) -> GuardedUpdateResult:
        changes = await self.store.delete_session(session_id)
        if changes == 0:
            return GuardedUpdateResult.NOT_FOUND

        logger.info(f"Deleted session {session_id}")
        return GuardedUpdateResult.APPLIED

    async def get_session(self, session_id: str) -> Optional[CounselingSession]:
        return await self.store.get_session(session_id)

    async def list_sessions(self) -> List[CounselingSession]:
        return await self.store.list_sessions()

    async def list_active_sessions(self) -> List[CounselingSession]:
        return await self.store.list_sessions(active_only=True)
