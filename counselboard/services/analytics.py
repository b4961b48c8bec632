"""
Counseling Session Analytics

Read-only aggregates for the dashboard: overall counts and durations,
time series, categorical breakdowns and per-student rollups.

Durations are never stored. They are derived from each session's date and
entry/exit times after parsing them into datetimes (see session_time).
"""
import logging
from collections import OrderedDict
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy import case, distinct, func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from counselboard.config import TOPIC_ANALYSIS_LIMIT, UNSPECIFIED_CLASS_LABEL
from counselboard.models.counseling_session import CounselingSession
from counselboard.models.session_participant import SessionParticipant
from counselboard.models.student import Student
from counselboard.services.session_time import duration_minutes, parse_session_date

logger = logging.getLogger(__name__)

TIME_SERIES_PERIODS = ("daily", "weekly", "monthly")

DateLike = Union[str, date]


def _percentage(count: int, total: int) -> float:
    if not total:
        return 0.0
    return round(count * 100.0 / total, 2)


def _month_bounds(today: date) -> Tuple[date, date]:
    first = today.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    return first, next_first - timedelta(days=1)


def iter_days(start: date, end: date) -> Iterable[date]:
    """Every calendar day from start to end, inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def week_label(day: date) -> str:
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def month_label(day: date) -> str:
    return day.strftime("%Y-%m")


def _completed_durations(rows) -> List[int]:
    return [
        duration_minutes(row.session_date, row.entry_time, row.exit_time, row.exit_date)
        for row in rows
    ]


class AnalyticsAggregator:
    """Computes dashboard analytics from the session store"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def _total_sessions(self, db) -> int:
        result = await db.execute(select(func.count(CounselingSession.id)))
        return result.scalar() or 0

    async def get_overall_stats(self, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Overall session counts and completed-session durations.

        Args:
            today: Reference date for the month/week/today counts

        Returns:
            Dict with total/active/completed/month/week/today counts,
            avg/max/min duration in minutes and individual/group percentages
        """
        today = today or date.today()
        month_start, month_end = _month_bounds(today)
        week_start = today - timedelta(days=7)

        def count_where(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        async with self.session_factory() as db:
            counts = (
                await db.execute(
                    select(
                        func.count(CounselingSession.id).label("total"),
                        count_where(CounselingSession.completed.is_(False)).label("active"),
                        count_where(CounselingSession.completed.is_(True)).label("completed"),
                        count_where(
                            CounselingSession.session_date.between(month_start, month_end)
                        ).label("month"),
                        count_where(CounselingSession.session_date >= week_start).label("week"),
                        count_where(CounselingSession.session_date == today).label("today"),
                        count_where(CounselingSession.session_type == "individual").label("individual"),
                        count_where(CounselingSession.session_type == "group").label("group_count"),
                    )
                )
            ).one()

            completed_rows = (
                await db.execute(
                    select(
                        CounselingSession.session_date,
                        CounselingSession.entry_time,
                        CounselingSession.exit_time,
                        CounselingSession.exit_date,
                    ).where(
                        CounselingSession.completed.is_(True),
                        CounselingSession.exit_time.is_not(None),
                    )
                )
            ).all()

        durations = _completed_durations(completed_rows)
        positive = [d for d in durations if d > 0]
        total = counts.total or 0

        return {
            "total_sessions": total,
            "active_sessions": int(counts.active),
            "completed_sessions": int(counts.completed),
            "month_sessions": int(counts.month),
            "week_sessions": int(counts.week),
            "today_sessions": int(counts.today),
            "avg_duration": round(sum(durations) / len(durations), 2) if durations else 0,
            "max_duration": max(durations) if durations else 0,
            "min_duration": min(positive) if positive else 0,
            "individual_percentage": _percentage(int(counts.individual), total),
            "group_percentage": _percentage(int(counts.group_count), total),
        }

    async def _daily_counts(self, start: date, end: date) -> Dict[date, Dict[str, int]]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(
                    CounselingSession.session_date,
                    func.count(CounselingSession.id).label("session_count"),
                    func.sum(case((CounselingSession.completed.is_(True), 1), else_=0)).label("completed"),
                )
                .where(CounselingSession.session_date.between(start, end))
                .group_by(CounselingSession.session_date)
            )
            rows = result.all()

        return {
            parse_session_date(row.session_date): {
                "count": int(row.session_count),
                "completed": int(row.completed or 0),
            }
            for row in rows
        }

    async def get_time_series_data(
        self,
        period: str,
        start: DateLike,
        end: DateLike,
    ) -> List[Dict[str, Any]]:
        """
        Session counts over time.

        Args:
            period: "daily", "weekly" (ISO week) or "monthly"
            start: First day of the range (inclusive)
            end: Last day of the range (inclusive)

        Returns:
            Rows of {date, count, completed, active}. Daily rows cover every
            day in the range, zero-filled. Weekly and monthly rows exist only
            for buckets holding at least one session.

        Raises:
            ValueError: If period is unknown or start is after end
        """
        if period not in TIME_SERIES_PERIODS:
            raise ValueError(f"Invalid period: {period}. Must be one of: {TIME_SERIES_PERIODS}")

        start_date = parse_session_date(start)
        end_date = parse_session_date(end)
        if start_date > end_date:
            raise ValueError(f"start ({start_date}) must not be after end ({end_date})")

        counts = await self._daily_counts(start_date, end_date)

        if period == "daily":
            series = []
            for day in iter_days(start_date, end_date):
                bucket = counts.get(day, {"count": 0, "completed": 0})
                series.append({
                    "date": day.isoformat(),
                    "count": bucket["count"],
                    "completed": bucket["completed"],
                    "active": bucket["count"] - bucket["completed"],
                })
            return series

        # Weekly/monthly buckets are not gap-filled
        label_for = week_label if period == "weekly" else month_label
        buckets: Dict[str, Dict[str, int]] = {}
        for day in sorted(counts):
            bucket = buckets.setdefault(label_for(day), {"count": 0, "completed": 0})
            bucket["count"] += counts[day]["count"]
            bucket["completed"] += counts[day]["completed"]

        return [
            {
                "date": label,
                "count": bucket["count"],
                "completed": bucket["completed"],
                "active": bucket["count"] - bucket["completed"],
            }
            for label, bucket in sorted(buckets.items())
        ]

    async def _grouped_counts(self, column, limit: Optional[int] = None) -> Tuple[List[Any], int]:
        async with self.session_factory() as db:
            count_col = func.count(CounselingSession.id).label("session_count")
            query = (
                select(column.label("label"), count_col)
                .group_by(column)
                .order_by(count_col.desc(), column)
            )
            if limit:
                query = query.limit(limit)

            rows = (await db.execute(query)).all()
            total = await self._total_sessions(db)

        return rows, total

    async def get_topic_analysis(self, limit: Optional[int] = TOPIC_ANALYSIS_LIMIT) -> List[Dict[str, Any]]:
        """Most frequent topics with share of all sessions and average completed duration."""
        rows, total = await self._grouped_counts(CounselingSession.topic, limit=limit)
        topics = [row.label for row in rows]

        durations: Dict[str, List[int]] = {topic: [] for topic in topics}
        if topics:
            async with self.session_factory() as db:
                completed_rows = (
                    await db.execute(
                        select(
                            CounselingSession.topic,
                            CounselingSession.session_date,
                            CounselingSession.entry_time,
                            CounselingSession.exit_time,
                            CounselingSession.exit_date,
                        ).where(
                            CounselingSession.topic.in_(topics),
                            CounselingSession.completed.is_(True),
                            CounselingSession.exit_time.is_not(None),
                        )
                    )
                ).all()
            for row in completed_rows:
                durations[row.topic].append(
                    duration_minutes(row.session_date, row.entry_time, row.exit_time, row.exit_date)
                )

        return [
            {
                "topic": row.label,
                "count": row.session_count,
                "percentage": _percentage(row.session_count, total),
                "avg_duration": (
                    round(sum(durations[row.label]) / len(durations[row.label]), 2)
                    if durations[row.label] else 0
                ),
            }
            for row in rows
        ]

    async def get_participant_type_analysis(self) -> List[Dict[str, Any]]:
        rows, total = await self._grouped_counts(CounselingSession.participant_type)
        return [
            {"type": row.label, "count": row.session_count, "percentage": _percentage(row.session_count, total)}
            for row in rows
        ]

    async def get_session_mode_analysis(self) -> List[Dict[str, Any]]:
        rows, total = await self._grouped_counts(CounselingSession.session_mode)
        return [
            {"mode": row.label, "count": row.session_count, "percentage": _percentage(row.session_count, total)}
            for row in rows
        ]

    async def get_class_analysis(self) -> List[Dict[str, Any]]:
        """
        Sessions per student class, joined through the participant links.

        A group session counts once per distinct class among its
        participants. Sessions with no participant resolving to a class are
        reported under the unspecified label.
        """
        has_class = (Student.class_name.is_not(None)) & (Student.class_name != "")
        session_count = func.count(distinct(CounselingSession.id)).label("session_count")

        async with self.session_factory() as db:
            rows = (
                await db.execute(
                    select(Student.class_name.label("class_name"), session_count)
                    .select_from(CounselingSession)
                    .join(SessionParticipant, SessionParticipant.session_id == CounselingSession.id)
                    .join(Student, Student.id == SessionParticipant.student_id)
                    .where(has_class)
                    .group_by(Student.class_name)
                )
            ).all()

            classified = (
                await db.execute(
                    select(func.count(distinct(CounselingSession.id)))
                    .select_from(CounselingSession)
                    .join(SessionParticipant, SessionParticipant.session_id == CounselingSession.id)
                    .join(Student, Student.id == SessionParticipant.student_id)
                    .where(has_class)
                )
            ).scalar() or 0
            total = await self._total_sessions(db)

        breakdown = [(row.class_name, row.session_count) for row in rows]
        unspecified = total - classified
        if unspecified > 0:
            breakdown.append((UNSPECIFIED_CLASS_LABEL, unspecified))

        breakdown.sort(key=lambda item: (-item[1], item[0]))
        return [
            {"class_name": name, "count": count, "percentage": _percentage(count, total)}
            for name, count in breakdown
        ]

    async def get_student_session_stats(self, student_id: str) -> Dict[str, Any]:
        """
        Per-student rollup used by the early-warning generator.

        Returns:
            Dict with total_sessions, last_session_date, topics (distinct,
            most recent first) and history (one entry per session with its
            derived duration, 0 while still active)
        """
        async with self.session_factory() as db:
            rows = (
                await db.execute(
                    select(
                        CounselingSession.id,
                        CounselingSession.session_date,
                        CounselingSession.entry_time,
                        CounselingSession.exit_time,
                        CounselingSession.exit_date,
                        CounselingSession.topic,
                        CounselingSession.session_mode,
                        CounselingSession.completed,
                    )
                    .join(SessionParticipant, SessionParticipant.session_id == CounselingSession.id)
                    .where(SessionParticipant.student_id == student_id)
                    .order_by(CounselingSession.session_date.desc(), CounselingSession.entry_time.desc())
                )
            ).all()

        topics: "OrderedDict[str, None]" = OrderedDict()
        history = []
        for row in rows:
            if row.topic:
                topics.setdefault(row.topic, None)
            history.append({
                "session_id": row.id,
                "session_date": parse_session_date(row.session_date).isoformat(),
                "topic": row.topic,
                "session_mode": row.session_mode,
                "duration": (
                    duration_minutes(row.session_date, row.entry_time, row.exit_time, row.exit_date)
                    if row.completed else 0
                ),
            })

        return {
            "student_id": student_id,
            "total_sessions": len(rows),
            "last_session_date": history[0]["session_date"] if history else None,
            "topics": list(topics),
            "history": history,
        }
