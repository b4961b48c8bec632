"""
Demo Data Loader

Seeds a student directory and several weeks of counseling sessions for
dashboard demos. Sessions go through the lifecycle controller and the
auto-complete sweeper, so the stored data obeys the same rules as live use.

Usage: python -m counselboard.scripts.load_demo [--days-back 45] [--seed 42] [--dry-run]
"""
import argparse
import asyncio
import logging
import random
import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from faker import Faker
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import async_sessionmaker

from counselboard.database import AsyncSessionLocal, engine, init_db
from counselboard.models.counseling_session import CounselingSession
from counselboard.models.session_participant import SessionParticipant
from counselboard.models.student import Student
from counselboard.repository.session_store import SessionStore
from counselboard.services.auto_complete import AutoCompleteSweeper
from counselboard.services.lifecycle import LifecycleController
from counselboard.services.session_time import TIME_FORMAT, session_timestamp

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "demo_config.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "days_back": 45,
    "sessions_per_day": 3,
    "num_students": 60,
    "unassigned_class_ratio": 0.05,
    "manual_completion_ratio": 0.85,
    "group_session_ratio": 0.25,
    "extension_ratio": 0.1,
    "counselor_ids": ["counselor-1"],
    "classes": ["9-A", "10-A", "11-A", "12-A"],
    "topics": ["Academic performance", "Exam anxiety", "Peer relationships", "Career planning"],
    "participant_types": ["student"],
    "session_modes": ["in_person", "phone", "online"],
    "session_locations": ["Guidance office"],
    "group_names": ["Support group"],
}


def load_config(config_path: str) -> dict:
    """Load configuration from YAML file, falling back to the built-in defaults"""
    config = dict(DEFAULT_CONFIG)
    try:
        with open(config_path, "r") as f:
            config.update(yaml.safe_load(f) or {})
    except FileNotFoundError:
        print(f"Warning: Config file not found at {config_path}, using defaults")
    except yaml.YAMLError as e:
        print(f"Error parsing config file: {e}")
        sys.exit(1)
    return config


def build_students(config: Dict[str, Any], rng: random.Random, fake: Faker) -> List[Dict[str, Any]]:
    students = []
    for i in range(config["num_students"]):
        class_name = None
        if rng.random() >= config["unassigned_class_ratio"]:
            class_name = rng.choice(config["classes"])
        students.append({
            "id": f"STU{i + 1:04d}",
            "name": fake.name(),
            "class_name": class_name,
        })
    return students


def _pick_participants(students: List[Dict[str, Any]], group: bool, rng: random.Random) -> List[str]:
    if not group:
        return [rng.choice(students)["id"]]

    # Groups are drawn from one class where possible
    anchor = rng.choice(students)
    classmates = [s for s in students if s["class_name"] == anchor["class_name"] and s is not anchor]
    size = min(len(classmates), rng.randint(1, 3))
    return [anchor["id"]] + [s["id"] for s in rng.sample(classmates, size)]


def build_demo_plan(
    config: Dict[str, Any],
    students: List[Dict[str, Any]],
    today: date,
    rng: random.Random,
) -> List[Dict[str, Any]]:
    """
    Plan the demo sessions without touching the database.

    Returns:
        One entry per session with:
            - data: start fields for LifecycleController.start_session
            - participant_ids: student ids
            - exit_time: HH:MM for a manual completion, or None to leave it open
            - extend: whether to grant the extension while open
    """
    plan = []
    for offset in range(config["days_back"], -1, -1):
        day = today - timedelta(days=offset)
        if day.weekday() >= 5:
            continue

        for _ in range(config["sessions_per_day"]):
            group = rng.random() < config["group_session_ratio"]
            entry = session_timestamp(day, f"{rng.randint(8, 15):02d}:{rng.choice((0, 15, 30, 45)):02d}")

            data = {
                "counselor_id": rng.choice(config["counselor_ids"]),
                "session_type": "group" if group else "individual",
                "session_date": day.isoformat(),
                "entry_time": entry.strftime(TIME_FORMAT),
                "topic": rng.choice(config["topics"]),
                "participant_type": rng.choice(config["participant_types"]),
                "session_mode": rng.choice(config["session_modes"]),
                "session_location": rng.choice(config["session_locations"]),
            }
            if group:
                data["group_name"] = rng.choice(config["group_names"])

            exit_time = None
            # Today's sessions stay open for the live view
            if offset > 0 and rng.random() < config["manual_completion_ratio"]:
                exit_time = (entry + timedelta(minutes=rng.randint(20, 55))).strftime(TIME_FORMAT)

            plan.append({
                "data": data,
                "participant_ids": _pick_participants(students, group, rng),
                "exit_time": exit_time,
                "extend": exit_time is None and rng.random() < config["extension_ratio"],
            })

    return plan


async def clear_demo_data(session_factory: async_sessionmaker):
    """Clear all existing counseling data"""
    async with session_factory() as db:
        async with db.begin():
            await db.execute(delete(SessionParticipant))
            await db.execute(delete(CounselingSession))
            await db.execute(delete(Student))
    print("✓ Cleared existing data")


async def load_demo(
    config: Dict[str, Any],
    session_factory: async_sessionmaker,
    today: Optional[date] = None,
    seed: Optional[int] = None,
) -> Dict[str, int]:
    """
    Seed students and sessions.

    Returns:
        Counts of students, sessions, manual completions and auto-completions
    """
    today = today or date.today()
    rng = random.Random(seed)
    fake = Faker()
    if seed is not None:
        fake.seed_instance(seed)

    students = build_students(config, rng, fake)
    plan = build_demo_plan(config, students, today, rng)

    await clear_demo_data(session_factory)

    async with session_factory() as db:
        async with db.begin():
            db.add_all([Student(**student) for student in students])
    print(f"  Created {len(students)} students")

    store = SessionStore(session_factory)
    lifecycle = LifecycleController(store)
    completed = 0

    for item in plan:
        session_obj = await lifecycle.start_session(item["data"], item["participant_ids"])
        if item["extend"]:
            await lifecycle.extend_session(session_obj.id)
        if item["exit_time"]:
            evaluation = {
                "session_flow": rng.choice(["very_positive", "positive", "neutral", "problematic"]),
                "cooperation_level": rng.randint(2, 5),
                "follow_up_needed": rng.random() < 0.3,
            }
            result = await lifecycle.complete_session(
                session_obj.id, {"exit_time": item["exit_time"]}, evaluation
            )
            if result.applied:
                completed += 1

    print(f"  Created {len(plan)} sessions ({completed} completed by the counselor)")

    sweep = await AutoCompleteSweeper(store).run_once()
    print(f"  Auto-completed {sweep['auto_completed']} overdue sessions")

    return {
        "students": len(students),
        "sessions": len(plan),
        "completed": completed,
        "auto_completed": sweep["auto_completed"],
    }


async def run(config: Dict[str, Any], seed: Optional[int]):
    await init_db(engine)
    try:
        await load_demo(config, AsyncSessionLocal, seed=seed)
    finally:
        await engine.dispose()


def main():
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Load counseling demo data")
    parser.add_argument(
        "--config",
        type=str,
        default=str(DEFAULT_CONFIG_PATH),
        help="YAML scenario file (default: config/demo_config.yaml)"
    )
    parser.add_argument(
        "--days-back",
        type=int,
        help="Number of past days to fill (default: from config file)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for reproducible data"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview the plan without writing to the database"
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    config = load_config(args.config)
    if args.days_back is not None:
        config["days_back"] = args.days_back

    if args.dry_run:
        rng = random.Random(args.seed)
        fake = Faker()
        students = build_students(config, rng, fake)
        plan = build_demo_plan(config, students, date.today(), rng)
        open_sessions = sum(1 for item in plan if item["exit_time"] is None)
        print(f"Dry run: {len(students)} students, {len(plan)} sessions, {open_sessions} left open")
        return

    print(f"\nLoading demo data ({config['days_back']} days, started {datetime.now():%Y-%m-%d %H:%M})...")
    asyncio.run(run(config, args.seed))
    print("\n✅ Demo data loaded successfully!")


if __name__ == "__main__":
    main()
