from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
import logging

from scanboard.submissions import service
from scanboard.submissions.dependencies import get_clock, get_store
from scanboard.submissions.errors import ScanboardError
from scanboard.submissions.models import Booklet, Submission
from scanboard.submissions.outcomes import ScanOutcome
from scanboard.submissions.school_clock import SchoolClock
from scanboard.submissions.schemas import (
    BookletCreate, ProvisionRequest, ProvisionResult, ScanRequest, VoidRequest
)
from scanboard.submissions.store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scans"])

# ==================== SCAN ====================

@router.post("/scan", response_model=ScanOutcome)
async def scan(
    data: ScanRequest,
    store: RecordStore = Depends(get_store),
    clock: SchoolClock = Depends(get_clock)
):
    """
    Record one scanned booklet

    Returns one of:
    - success: points awarded, fresh cumulative/monthly totals, checksum warning if any
    - duplicate: booklet already submitted that day (existing submission_id)
    - not_found: no booklet for the QR, parsed fields for a rescue binding

    Errors:
    - 400 weekend date, malformed QR, wrong class, self-study without pages
    """
    try:
        return await service.scan_submission(
            store, clock, data.raw_payload, data.class_id, data.date, data.pages_done
        )
    except ScanboardError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Scan failed")
        raise HTTPException(status_code=500, detail=str(e))

# ==================== BOOKLETS ====================

@router.post("/booklets", response_model=Booklet)
async def create_booklet(data: BookletCreate, store: RecordStore = Depends(get_store)):
    """
    Rescue binding: register a booklet for a QR that scanned as not_found

    Errors:
    - 400 malformed QR
    - 404 student or material missing
    - 409 payload or (student, material) already registered
    """
    try:
        return await service.create_booklet(store, data.student_id, data.material_id, data.qr_payload)
    except ScanboardError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Booklet creation failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/booklets/provision", response_model=ProvisionResult)
async def provision_booklets(data: ProvisionRequest, store: RecordStore = Depends(get_store)):
    """
    Create booklets for every student x active material of a class
    Safe to repeat: existing bindings are skipped
    """
    try:
        created = await service.provision_booklets(store, data.class_id)
        return ProvisionResult(class_id=data.class_id, created=created)
    except ScanboardError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Provisioning failed")
        raise HTTPException(status_code=500, detail=str(e))

# ==================== VOID ====================

@router.post("/submissions/{submission_id}/void", response_model=Submission)
async def void_submission(
    submission_id: str,
    data: Optional[VoidRequest] = None,
    store: RecordStore = Depends(get_store),
    clock: SchoolClock = Depends(get_clock)
):
    """
    Undo a submission (kept for audit, excluded from every total)
    Voiding twice returns the record unchanged with its original reason
    """
    try:
        reason = data.reason if data else None
        return await service.void_submission(store, clock, submission_id, reason)
    except ScanboardError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Void failed")
        raise HTTPException(status_code=500, detail=str(e))
