"""
Scan outcomes
Tagged variants, discriminated on `status`
"""

from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field


class ParsedIdentity(BaseModel):
    """Decoded fields handed back so an operator can bind the booklet by hand"""
    year: int
    class_code: str
    student_number: int
    material_code: str
    normalized_payload: str


class ScanSuccess(BaseModel):
    status: Literal["success"] = "success"
    submission_id: str
    student_name: str
    material_name: str
    points_awarded: int
    cumulative_points: int
    monthly_points: int
    warning: Optional[str] = None  # checksum advisory, never blocks


class DuplicateForDay(BaseModel):
    status: Literal["duplicate"] = "duplicate"
    message: str
    submission_id: str  # the submission already recorded for that day


class NotFoundOutcome(BaseModel):
    status: Literal["not_found"] = "not_found"
    message: str = "No booklet is registered for this QR."
    parsed: ParsedIdentity
    can_create_booklet: bool = False


ScanOutcome = Annotated[
    Union[ScanSuccess, DuplicateForDay, NotFoundOutcome],
    Field(discriminator="status")
]


class LedgerSuccess(BaseModel):
    """Ledger-level success, before totals are attached"""
    status: Literal["success"] = "success"
    submission_id: str
    points_awarded: int
