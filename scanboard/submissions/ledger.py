"""
Submission Ledger
At most one live submission per booklet per school-local day,
point awards materialized at insert time, reversible voiding.
"""

import logging
from typing import Optional, Union

from scanboard.config import DEFAULT_VOID_REASON
from scanboard.submissions.audit import log_audit
from scanboard.submissions.errors import (
    DuplicateRecord, MissingPagesForSelfStudy, NonSchoolDay, NotFound
)
from scanboard.submissions.models import MaterialMode, Submission, generate_id
from scanboard.submissions.outcomes import DuplicateForDay, LedgerSuccess
from scanboard.submissions.resolver import BoundBooklet
from scanboard.submissions.school_clock import SchoolClock
from scanboard.submissions.store import RecordStore

logger = logging.getLogger(__name__)


def validate_submission(
    bound: BoundBooklet,
    school_date: str,
    clock: SchoolClock,
    pages_done: Optional[int] = None
) -> None:
    """
    Checks that run before any read or write

    Raises:
        NonSchoolDay: school_date is a Saturday or Sunday
        MissingPagesForSelfStudy: self-study material without pages_done > 0
    """
    if not clock.is_school_day(school_date):
        raise NonSchoolDay(school_date)

    if bound.material.mode == MaterialMode.SELF_STUDY and (pages_done is None or pages_done <= 0):
        raise MissingPagesForSelfStudy()


def _duplicate(school_date: str, existing_id: str) -> DuplicateForDay:
    return DuplicateForDay(
        message=f"Already submitted on {school_date}.",
        submission_id=existing_id
    )


async def submit(
    store: RecordStore,
    clock: SchoolClock,
    bound: BoundBooklet,
    school_date: str,
    pages_done: Optional[int] = None
) -> Union[LedgerSuccess, DuplicateForDay]:
    validate_submission(bound, school_date, clock, pages_done)

    booklet_id = bound.booklet.booklet_id
    day_start, day_end = clock.school_day_range(school_date)

    existing = await store.find_live_submission(booklet_id, day_start, day_end)
    if existing:
        logger.info("Duplicate scan of %s on %s (%s)", booklet_id, school_date, existing.submission_id)
        return _duplicate(school_date, existing.submission_id)

    is_self_study = bound.material.mode == MaterialMode.SELF_STUDY
    submission = Submission(
        submission_id=generate_id("SUB"),
        booklet_id=booklet_id,
        class_id=bound.student.class_id,
        student_id=bound.student.student_id,
        material_id=bound.material.material_id,
        timestamp=clock.timestamp_on(school_date),
        school_date=school_date,
        points_awarded=bound.material.points_per_submit,
        pages_done=pages_done if is_self_study else None
    )

    try:
        await store.insert_submission(submission)
    except DuplicateRecord:
        # Lost the race against a concurrent scan of the same booklet and day
        winner = await store.find_live_submission(booklet_id, day_start, day_end)
        if winner is None:
            raise
        logger.info("Concurrent scan of %s on %s resolved to %s", booklet_id, school_date, winner.submission_id)
        return _duplicate(school_date, winner.submission_id)

    logger.info(
        "Recorded %s: booklet=%s date=%s points=%d",
        submission.submission_id, booklet_id, school_date, submission.points_awarded
    )
    return LedgerSuccess(
        submission_id=submission.submission_id,
        points_awarded=submission.points_awarded
    )


async def void(
    store: RecordStore,
    clock: SchoolClock,
    submission_id: str,
    reason: str = DEFAULT_VOID_REASON
) -> Submission:
    """
    Undo a submission. Voiding twice returns the record unchanged.

    Raises:
        NotFound: no such submission
    """
    existing = await store.get_submission(submission_id)
    if not existing:
        raise NotFound("Submission not found")
    if existing.is_void:
        return existing

    updated = await store.mark_void(submission_id, reason, clock.now())
    if updated is None:
        # Voided concurrently; keep the first reason
        return await store.get_submission(submission_id)

    await log_audit(
        store, "void_submission", "submission", submission_id,
        {"reason": reason, "student_id": updated.student_id, "points_awarded": updated.points_awarded}
    )
    logger.info("Voided %s (%s)", submission_id, reason)
    return updated
