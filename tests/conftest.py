import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from scanboard.main import app
from scanboard.submissions.dependencies import get_clock, get_store
from scanboard.submissions.errors import DuplicateRecord
from scanboard.submissions.models import (
    AuditLog, Booklet, Material, MaterialMode, SchoolClass, Student, Submission
)
from scanboard.submissions.school_clock import SchoolClock
from scanboard.submissions.store import RecordStore, StudentPoints

# Tuesday 2026-10-20 09:00 in Asia/Tokyo
TUESDAY_9AM = datetime(2026, 10, 20, 0, 0, tzinfo=timezone.utc)


class InMemoryRecordStore(RecordStore):
    """
    RecordStore over plain dicts with the same unique keys as the Mongo indexes.
    Reads yield to the event loop so concurrent requests interleave.
    """

    def __init__(self):
        self.classes: Dict[str, SchoolClass] = {}
        self.students: Dict[str, Student] = {}
        self.materials: Dict[str, Material] = {}
        self.booklets: Dict[str, Booklet] = {}
        self.submissions: Dict[str, Submission] = {}
        self.audit_logs: List[AuditLog] = []

    async def get_class(self, class_id):
        await asyncio.sleep(0)
        return self.classes.get(class_id)

    async def find_class(self, year, class_code):
        await asyncio.sleep(0)
        return next(
            (c for c in self.classes.values() if c.year == year and c.class_code == class_code),
            None
        )

    async def get_student(self, student_id):
        await asyncio.sleep(0)
        return self.students.get(student_id)

    async def find_student(self, class_id, number):
        await asyncio.sleep(0)
        return next(
            (s for s in self.students.values() if s.class_id == class_id and s.number == number),
            None
        )

    async def list_students(self, class_id):
        return sorted(
            (s for s in self.students.values() if s.class_id == class_id),
            key=lambda s: s.number
        )

    async def get_students(self, student_ids):
        return {i: self.students[i] for i in student_ids if i in self.students}

    async def get_material(self, material_id):
        await asyncio.sleep(0)
        return self.materials.get(material_id)

    async def find_material(self, code):
        await asyncio.sleep(0)
        return next((m for m in self.materials.values() if m.code == code), None)

    async def list_active_materials(self):
        return sorted((m for m in self.materials.values() if m.is_active), key=lambda m: m.code)

    async def get_materials(self, material_ids):
        return {i: self.materials[i] for i in material_ids if i in self.materials}

    async def find_booklet_by_payload(self, qr_payload):
        await asyncio.sleep(0)
        return next((b for b in self.booklets.values() if b.qr_payload == qr_payload), None)

    async def find_booklet_for(self, student_id, material_id):
        await asyncio.sleep(0)
        return next(
            (b for b in self.booklets.values()
             if b.student_id == student_id and b.material_id == material_id),
            None
        )

    async def insert_booklet(self, booklet):
        for existing in self.booklets.values():
            if existing.qr_payload == booklet.qr_payload:
                raise DuplicateRecord("booklets", booklet.qr_payload)
            if (existing.student_id, existing.material_id) == (booklet.student_id, booklet.material_id):
                raise DuplicateRecord("booklets", f"{booklet.student_id}/{booklet.material_id}")
        self.booklets[booklet.booklet_id] = booklet
        return booklet

    async def get_submission(self, submission_id):
        await asyncio.sleep(0)
        return self.submissions.get(submission_id)

    async def find_live_submission(self, booklet_id, start, end):
        await asyncio.sleep(0)
        matches = [
            s for s in self.submissions.values()
            if s.booklet_id == booklet_id and not s.is_void and start <= s.timestamp <= end
        ]
        return max(matches, key=lambda s: s.timestamp) if matches else None

    async def insert_submission(self, submission):
        for existing in self.submissions.values():
            if (
                not existing.is_void
                and existing.booklet_id == submission.booklet_id
                and existing.school_date == submission.school_date
            ):
                raise DuplicateRecord("submissions", f"{submission.booklet_id}/{submission.school_date}")
        self.submissions[submission.submission_id] = submission
        return submission

    async def mark_void(self, submission_id, reason, voided_at):
        existing = self.submissions.get(submission_id)
        if existing is None or existing.is_void:
            return None
        updated = existing.model_copy(update={"is_void": True, "void_reason": reason, "voided_at": voided_at})
        self.submissions[submission_id] = updated
        return updated

    def _live(self, start: Optional[datetime], end: Optional[datetime]):
        for s in self.submissions.values():
            if s.is_void:
                continue
            if start is not None and s.timestamp < start:
                continue
            if end is not None and s.timestamp > end:
                continue
            yield s

    async def sum_points(self, student_id, start=None, end=None):
        return sum(s.points_awarded for s in self._live(start, end) if s.student_id == student_id)

    async def student_points(self, class_id, start=None, end=None):
        groups: Dict[str, StudentPoints] = {}
        for s in self._live(start, end):
            if s.class_id != class_id:
                continue
            group = groups.get(s.student_id)
            if group is None:
                groups[s.student_id] = StudentPoints(
                    student_id=s.student_id, points=s.points_awarded, last_submitted_at=s.timestamp
                )
            else:
                group.points += s.points_awarded
                group.last_submitted_at = max(group.last_submitted_at, s.timestamp)
        return list(groups.values())

    async def list_live_submissions(self, class_id, start, end):
        return sorted(
            (s for s in self._live(start, end) if s.class_id == class_id),
            key=lambda s: s.timestamp,
            reverse=True
        )

    async def recent_submissions(self, class_id, limit):
        return sorted(
            (s for s in self._live(None, None) if s.class_id == class_id),
            key=lambda s: s.timestamp,
            reverse=True
        )[:limit]

    async def insert_audit(self, log):
        self.audit_logs.append(log)


class FrozenTime:
    """Settable 'now' for SchoolClock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def seed(store: InMemoryRecordStore):
    store.classes["CLS_3A"] = SchoolClass(class_id="CLS_3A", year=2026, class_code="3A", name="Year 3 Class A")
    store.classes["CLS_3B"] = SchoolClass(class_id="CLS_3B", year=2026, class_code="3B", name="Year 3 Class B")

    for number, name in [(1, "Aoi"), (2, "Haru"), (3, "Mio"), (7, "Sora")]:
        student_id = f"STU_3A_{number:02d}"
        store.students[student_id] = Student(
            student_id=student_id, class_id="CLS_3A", number=number, display_name=name
        )
    store.students["STU_3B_01"] = Student(
        student_id="STU_3B_01", class_id="CLS_3B", number=1, display_name="Kai"
    )

    store.materials["MAT_KANJI"] = Material(
        material_id="MAT_KANJI", code="KANJI", name="Kanji Drill", points_per_submit=1
    )
    store.materials["MAT_KEISAN"] = Material(
        material_id="MAT_KEISAN", code="KEISAN", name="Arithmetic Drill", points_per_submit=2
    )
    store.materials["MAT_SELF"] = Material(
        material_id="MAT_SELF", code="SELF", name="Self Study", points_per_submit=1,
        mode=MaterialMode.SELF_STUDY
    )
    store.materials["MAT_OLD"] = Material(
        material_id="MAT_OLD", code="OLD", name="Retired Drill", is_active=False
    )

    store.booklets["BKL_A1_KANJI"] = Booklet(
        booklet_id="BKL_A1_KANJI",
        student_id="STU_3A_01",
        material_id="MAT_KANJI",
        qr_payload="T4|BM|2026|3A|001|KANJI"
    )


@pytest.fixture()
def store():
    s = InMemoryRecordStore()
    seed(s)
    return s


@pytest.fixture()
def frozen_time():
    return FrozenTime(TUESDAY_9AM)


@pytest.fixture()
def clock(frozen_time):
    return SchoolClock("Asia/Tokyo", now=frozen_time)


@pytest.fixture()
def client(store, clock):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()
