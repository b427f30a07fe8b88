from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from scanboard.config import RECENT_EVENTS_LIMIT
from scanboard.submissions import service
from scanboard.submissions.aggregator import StudentTotals
from scanboard.submissions.dependencies import get_clock, get_store
from scanboard.submissions.errors import ScanboardError
from scanboard.submissions.ranker import DailyStatus, Event, Leaderboards
from scanboard.submissions.school_clock import SchoolClock
from scanboard.submissions.schemas import ClassFeed, check_school_date
from scanboard.submissions.store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Leaderboards"])

# ==================== LEADERBOARDS ====================

@router.get("/leaderboard", response_model=Leaderboards)
async def get_leaderboards(
    class_id: str = Query(..., min_length=1),
    store: RecordStore = Depends(get_store),
    clock: SchoolClock = Depends(get_clock)
):
    """
    Monthly and all-time top 10 of a class
    Ties: the student whose latest submission came earlier ranks higher
    """
    try:
        return await service.get_leaderboards(store, clock, class_id)
    except Exception as e:
        logger.exception("Leaderboard failed for %s", class_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/events", response_model=List[Event])
async def get_recent_events(
    class_id: str = Query(..., min_length=1),
    limit: int = Query(RECENT_EVENTS_LIMIT, ge=1, le=50),
    store: RecordStore = Depends(get_store)
):
    """Most recent non-void submissions, newest first"""
    try:
        return await service.get_recent_events(store, class_id, limit)
    except Exception as e:
        logger.exception("Recent events failed for %s", class_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/feed", response_model=ClassFeed)
async def get_class_feed(
    class_id: str = Query(..., min_length=1),
    limit: int = Query(RECENT_EVENTS_LIMIT, ge=1, le=50),
    store: RecordStore = Depends(get_store),
    clock: SchoolClock = Depends(get_clock)
):
    """Leaderboards and recent events for the classroom display"""
    try:
        return await service.get_class_feed(store, clock, class_id, limit)
    except Exception as e:
        logger.exception("Feed failed for %s", class_id)
        raise HTTPException(status_code=500, detail=str(e))

# ==================== TOTALS & STATUS ====================

@router.get("/students/{student_id}/totals", response_model=StudentTotals)
async def get_student_totals(
    student_id: str,
    store: RecordStore = Depends(get_store),
    clock: SchoolClock = Depends(get_clock)
):
    try:
        return await service.get_student_totals(store, clock, student_id)
    except ScanboardError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception("Totals failed for %s", student_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/daily-status", response_model=DailyStatus)
async def get_daily_status(
    class_id: str = Query(..., min_length=1),
    date: Optional[str] = Query(None, description="School-local YYYY-MM-DD, defaults to today"),
    store: RecordStore = Depends(get_store),
    clock: SchoolClock = Depends(get_clock)
):
    """
    Per-student submission status for one school day
    missing_count is 0 on weekends
    """
    try:
        if date is not None:
            check_school_date(date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        return await service.get_daily_status(store, clock, class_id, date)
    except Exception as e:
        logger.exception("Daily status failed for %s", class_id)
        raise HTTPException(status_code=500, detail=str(e))
