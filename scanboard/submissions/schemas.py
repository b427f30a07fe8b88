import re
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from scanboard.submissions.ranker import Event, RankedRow
from scanboard.config import TIE_BREAK_RULE

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def check_school_date(value: str) -> str:
    if not DATE_PATTERN.match(value):
        raise ValueError("date must be YYYY-MM-DD")
    date.fromisoformat(value)
    return value

# ==================== REQUEST SCHEMAS ====================

class ScanRequest(BaseModel):
    """
    One scanned QR for the class currently selected for data entry
    """
    raw_payload: str = Field(..., min_length=1)
    class_id: str = Field(..., min_length=1)
    date: str  # school-local YYYY-MM-DD chosen by the operator
    pages_done: Optional[int] = Field(None, ge=1, le=500)  # self-study only

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        return check_school_date(v)

class BookletCreate(BaseModel):
    """
    Rescue binding after a not_found scan
    """
    student_id: str = Field(..., min_length=1)
    material_id: str = Field(..., min_length=1)
    qr_payload: str = Field(..., min_length=1)

class ProvisionRequest(BaseModel):
    class_id: str = Field(..., min_length=1)

class VoidRequest(BaseModel):
    reason: Optional[str] = Field(None, min_length=1, max_length=200)

# ==================== RESPONSE SCHEMAS ====================

class ProvisionResult(BaseModel):
    class_id: str
    created: int

class ClassFeed(BaseModel):
    """
    Everything the classroom display shows in one call
    """
    monthly_top10: List[RankedRow]
    all_time_top10: List[RankedRow]
    recent_events: List[Event]
    tie_break_rule: str = TIE_BREAK_RULE
