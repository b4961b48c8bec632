"""
Session Time Arithmetic

Sessions store a calendar date and independent HH:MM wall-clock strings.
Every calculation here parses them into a datetime first and only then
subtracts or compares.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

TIME_FORMAT = "%H:%M"


def parse_time_of_day(value: str) -> time:
    """
    Parse an HH:MM (or HH:MM:SS) string.

    Raises:
        ValueError: If value is not a valid time of day
    """
    if not isinstance(value, str):
        raise ValueError(f"Invalid time of day: {value!r}")
    for fmt in (TIME_FORMAT, "%H:%M:%S"):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time of day: {value!r}. Expected HH:MM")


def normalize_time_of_day(value: str) -> str:
    """Return value re-rendered as zero-padded HH:MM."""
    return parse_time_of_day(value).strftime(TIME_FORMAT)


def parse_session_date(value: Union[str, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}. Expected YYYY-MM-DD")


def session_timestamp(session_date: Union[str, date], time_of_day: str) -> datetime:
    """Combine a session date and an HH:MM string into one naive local timestamp."""
    return datetime.combine(parse_session_date(session_date), parse_time_of_day(time_of_day))


def elapsed_minutes(now: datetime, session_date: Union[str, date], entry_time: str) -> int:
    """Whole minutes between the session's entry and now (negative if entry is in the future)."""
    started_at = session_timestamp(session_date, entry_time)
    return int((now - started_at).total_seconds() // 60)


def duration_minutes(
    session_date: Union[str, date],
    entry_time: str,
    exit_time: Optional[str],
    exit_date: Optional[Union[str, date]] = None,
) -> int:
    """
    Derived session duration in whole minutes.

    Returns 0 when the session has no exit time. When exit_date is recorded
    the exit is placed on that day. Otherwise an exit earlier than the entry
    means the session ran past midnight, so the exit is taken to be on the
    following day.
    """
    if not exit_time or not entry_time:
        return 0

    started_at = session_timestamp(session_date, entry_time)
    if exit_date:
        ended_at = session_timestamp(exit_date, exit_time)
    else:
        ended_at = session_timestamp(session_date, exit_time)
        if ended_at < started_at:
            ended_at += timedelta(days=1)

    return max(int((ended_at - started_at).total_seconds() // 60), 0)
