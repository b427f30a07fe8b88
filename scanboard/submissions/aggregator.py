"""
Points Aggregator
Totals are summed from the ledger on every call, never cached
"""

from pydantic import BaseModel

from scanboard.submissions.school_clock import SchoolClock
from scanboard.submissions.store import RecordStore


class StudentTotals(BaseModel):
    student_id: str
    cumulative: int
    current_period: int  # current calendar month in APP_TIMEZONE


async def totals(store: RecordStore, clock: SchoolClock, student_id: str) -> StudentTotals:
    month_start, month_end = clock.current_month_range()
    cumulative = await store.sum_points(student_id)
    current_period = await store.sum_points(student_id, month_start, month_end)
    return StudentTotals(
        student_id=student_id,
        cumulative=cumulative,
        current_period=current_period
    )
