from datetime import datetime, timezone
import secrets
from typing import Optional
from pydantic import BaseModel, Field
from enum import Enum


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{secrets.token_hex(8).upper()}"

# ==================== ENUMS ====================

class MaterialMode(str, Enum):
    NORMAL = "normal"
    SELF_STUDY = "self_study"  # every submission must carry pages_done > 0

# ==================== CATALOG (read-only here) ====================

class SchoolClass(BaseModel):
    class_id: str
    year: int
    class_code: str  # e.g. "3A"
    name: str

class Student(BaseModel):
    student_id: str
    class_id: str
    number: int  # attendance number within the class
    display_name: str

class Material(BaseModel):
    material_id: str
    code: str  # [A-Z0-9]+, appears in the QR payload
    name: str
    points_per_submit: int = 1
    mode: MaterialMode = MaterialMode.NORMAL
    is_active: bool = True

# ==================== LEDGER RECORDS ====================

class Booklet(BaseModel):
    """
    Binds one student to one material
    Unique by qr_payload and by (student_id, material_id)
    """
    booklet_id: str  # BKL_XXXXXX
    student_id: str
    material_id: str
    qr_payload: str  # normalized payload, lookup key
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)

class Submission(BaseModel):
    """
    Point award event, never deleted
    Undone by is_void=True; void rows are excluded from every aggregate
    """
    submission_id: str  # SUB_XXXXXX
    booklet_id: str
    class_id: str
    student_id: str
    material_id: str
    timestamp: datetime  # school-local date + wall-clock time, stored as UTC
    school_date: str  # YYYY-MM-DD in APP_TIMEZONE, duplicate key with booklet_id
    points_awarded: int
    pages_done: Optional[int] = None
    is_void: bool = False
    void_reason: Optional[str] = None
    voided_at: Optional[datetime] = None

class AuditLog(BaseModel):
    action: str  # void_submission, rescue_binding, provision_booklets
    target_type: str
    target_id: str
    metadata: dict = {}
    timestamp: datetime = Field(default_factory=utc_now)
