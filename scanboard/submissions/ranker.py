"""
Leaderboard Ranker

Ordering: total points DESC, latest submission ASC (earlier finisher wins
a tie), then student_id ASC so identical inputs always rank identically.
"""

import asyncio
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from scanboard.config import LEADERBOARD_SIZE, TIE_BREAK_RULE
from scanboard.submissions.school_clock import SchoolClock, TimeRange
from scanboard.submissions.store import RecordStore, StudentPoints


class RankedRow(BaseModel):
    rank: int
    student_id: str
    number: int
    student_name: str
    points: int
    last_submitted_at: datetime


class Leaderboards(BaseModel):
    monthly_top10: List[RankedRow]
    all_time_top10: List[RankedRow]
    tie_break_rule: str = TIE_BREAK_RULE


class Event(BaseModel):
    submission_id: str
    student_name: str
    material_name: str
    points: int
    timestamp: datetime


class StudentDayStatus(BaseModel):
    student_id: str
    number: int
    display_name: str
    submitted: bool
    timestamp: Optional[datetime] = None  # latest submission that day
    points_awarded: int = 0


class DailyStatus(BaseModel):
    date: str
    is_school_day: bool
    missing_count: int
    rows: List[StudentDayStatus]


def rank_key(group: StudentPoints):
    return (-group.points, group.last_submitted_at, group.student_id)


async def top_n(
    store: RecordStore,
    class_id: str,
    n: int = LEADERBOARD_SIZE,
    period: Optional[TimeRange] = None
) -> List[RankedRow]:
    if n <= 0:
        return []
    start, end = period if period else (None, None)
    groups = sorted(await store.student_points(class_id, start, end), key=rank_key)[:n]
    if not groups:
        return []

    students = await store.get_students([g.student_id for g in groups])

    rows = []
    for index, group in enumerate(groups):
        student = students.get(group.student_id)
        rows.append(RankedRow(
            rank=index + 1,
            student_id=group.student_id,
            number=student.number if student else 0,
            student_name=student.display_name if student else "Unknown",
            points=group.points,
            last_submitted_at=group.last_submitted_at
        ))
    return rows


async def leaderboards(store: RecordStore, clock: SchoolClock, class_id: str) -> Leaderboards:
    monthly, all_time = await asyncio.gather(
        top_n(store, class_id, LEADERBOARD_SIZE, clock.current_month_range()),
        top_n(store, class_id, LEADERBOARD_SIZE)
    )
    return Leaderboards(monthly_top10=monthly, all_time_top10=all_time)


async def recent_events(store: RecordStore, class_id: str, limit: int) -> List[Event]:
    if limit <= 0:
        return []
    submissions = await store.recent_submissions(class_id, limit)
    if not submissions:
        return []

    students = await store.get_students(list({s.student_id for s in submissions}))
    materials = await store.get_materials(list({s.material_id for s in submissions}))

    events = []
    for item in submissions:
        student = students.get(item.student_id)
        material = materials.get(item.material_id)
        events.append(Event(
            submission_id=item.submission_id,
            student_name=student.display_name if student else "Unknown",
            material_name=material.name if material else "Unknown",
            points=item.points_awarded,
            timestamp=item.timestamp
        ))
    return events


async def daily_status(
    store: RecordStore,
    clock: SchoolClock,
    class_id: str,
    school_date: str
) -> DailyStatus:
    """Who has submitted anything on a school-local day"""
    day_start, day_end = clock.school_day_range(school_date)
    students, submissions = await asyncio.gather(
        store.list_students(class_id),
        store.list_live_submissions(class_id, day_start, day_end)
    )

    latest = {}
    points = {}
    for item in submissions:
        if item.student_id not in latest or item.timestamp > latest[item.student_id]:
            latest[item.student_id] = item.timestamp
        points[item.student_id] = points.get(item.student_id, 0) + item.points_awarded

    rows = [
        StudentDayStatus(
            student_id=student.student_id,
            number=student.number,
            display_name=student.display_name,
            submitted=student.student_id in latest,
            timestamp=latest.get(student.student_id),
            points_awarded=points.get(student.student_id, 0)
        )
        for student in students
    ]

    is_school_day = clock.is_school_day(school_date)
    missing = sum(1 for row in rows if not row.submitted) if is_school_day else 0
    return DailyStatus(
        date=school_date,
        is_school_day=is_school_day,
        missing_count=missing,
        rows=rows
    )
