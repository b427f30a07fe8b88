"""
Boundary operations for scan ingestion and ranking

Callers are already authorized for the target class. Every operation is
request-scoped and talks to the ledger only through the given RecordStore.
"""

import asyncio
import logging
from typing import List, Optional

from scanboard.config import DEFAULT_VOID_REASON
from scanboard.submissions import aggregator, ledger, qr_codec, ranker, resolver
from scanboard.submissions.aggregator import StudentTotals
from scanboard.submissions.errors import NonSchoolDay, NotFound
from scanboard.submissions.models import Booklet, Submission
from scanboard.submissions.outcomes import (
    DuplicateForDay, LedgerSuccess, NotFoundOutcome, ScanOutcome, ScanSuccess
)
from scanboard.submissions.ranker import DailyStatus, Event, Leaderboards
from scanboard.submissions.resolver import BoundBooklet
from scanboard.submissions.school_clock import SchoolClock
from scanboard.submissions.schemas import ClassFeed
from scanboard.submissions.store import RecordStore

logger = logging.getLogger(__name__)

# ==================== SCANNING ====================

async def scan_submission(
    store: RecordStore,
    clock: SchoolClock,
    raw_payload: str,
    class_id: str,
    school_date: str,
    pages_done: Optional[int] = None
) -> ScanOutcome:
    """
    Process one scanned QR

    Flow:
    1. Weekday check (before the payload is even read)
    2. Decode the QR
    3. Resolve or bind the booklet, then check it belongs to class_id
    4. Record the submission unless the booklet already has one that day
    5. Attach fresh cumulative and monthly totals

    Raises:
        NonSchoolDay, MalformedPayload, WrongClassScan, MissingPagesForSelfStudy
    """
    logger.info("Scan for class %s on %s", class_id, school_date)
    if not clock.is_school_day(school_date):
        raise NonSchoolDay(school_date)

    identity = qr_codec.decode(raw_payload)

    resolved = await resolver.resolve(store, identity, class_id)
    if isinstance(resolved, NotFoundOutcome):
        return resolved
    bound: BoundBooklet = resolved

    recorded = await ledger.submit(store, clock, bound, school_date, pages_done)
    if isinstance(recorded, DuplicateForDay):
        return recorded
    if not isinstance(recorded, LedgerSuccess):
        raise TypeError(f"Unexpected ledger outcome: {recorded!r}")

    totals = await aggregator.totals(store, clock, bound.student.student_id)

    return ScanSuccess(
        submission_id=recorded.submission_id,
        student_name=bound.student.display_name,
        material_name=bound.material.name,
        points_awarded=recorded.points_awarded,
        cumulative_points=totals.cumulative,
        monthly_points=totals.current_period,
        warning=identity.warning
    )

# ==================== BOOKLETS ====================

async def create_booklet(
    store: RecordStore,
    student_id: str,
    material_id: str,
    payload: str
) -> Booklet:
    return await resolver.create_booklet(store, student_id, material_id, payload)


async def provision_booklets(store: RecordStore, class_id: str) -> int:
    return await resolver.provision_class(store, class_id)

# ==================== VOIDING ====================

async def void_submission(
    store: RecordStore,
    clock: SchoolClock,
    submission_id: str,
    reason: Optional[str] = None
) -> Submission:
    return await ledger.void(store, clock, submission_id, reason or DEFAULT_VOID_REASON)

# ==================== RANKINGS & TOTALS ====================

async def get_leaderboards(store: RecordStore, clock: SchoolClock, class_id: str) -> Leaderboards:
    return await ranker.leaderboards(store, clock, class_id)


async def get_recent_events(store: RecordStore, class_id: str, limit: int) -> List[Event]:
    return await ranker.recent_events(store, class_id, limit)


async def get_student_totals(store: RecordStore, clock: SchoolClock, student_id: str) -> StudentTotals:
    if not await store.get_student(student_id):
        raise NotFound("Student not found")
    return await aggregator.totals(store, clock, student_id)


async def get_daily_status(
    store: RecordStore,
    clock: SchoolClock,
    class_id: str,
    school_date: Optional[str] = None
) -> DailyStatus:
    return await ranker.daily_status(store, clock, class_id, school_date or clock.today())


async def get_class_feed(store: RecordStore, clock: SchoolClock, class_id: str, limit: int) -> ClassFeed:
    boards, events = await asyncio.gather(
        ranker.leaderboards(store, clock, class_id),
        ranker.recent_events(store, class_id, limit)
    )
    return ClassFeed(
        monthly_top10=boards.monthly_top10,
        all_time_top10=boards.all_time_top10,
        recent_events=events,
        tie_break_rule=boards.tie_break_rule
    )
