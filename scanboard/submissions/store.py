"""
Record store
The only shared mutable resource. Components receive a RecordStore
instead of reaching for a global database handle.

Unique keys every implementation must enforce on insert:
    booklets.qr_payload
    booklets.(student_id, material_id)
    submissions.(booklet_id, school_date) among rows with is_void=False
A violation raises DuplicateRecord.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from scanboard.submissions.errors import DuplicateRecord
from scanboard.submissions.models import (
    AuditLog, Booklet, Material, SchoolClass, Student, Submission
)


class StudentPoints(BaseModel):
    """Per-student aggregate of non-void submissions"""
    student_id: str
    points: int
    last_submitted_at: datetime


class RecordStore(ABC):

    # ==================== CATALOG ====================

    @abstractmethod
    async def get_class(self, class_id: str) -> Optional[SchoolClass]:
        ...

    @abstractmethod
    async def find_class(self, year: int, class_code: str) -> Optional[SchoolClass]:
        ...

    @abstractmethod
    async def get_student(self, student_id: str) -> Optional[Student]:
        ...

    @abstractmethod
    async def find_student(self, class_id: str, number: int) -> Optional[Student]:
        ...

    @abstractmethod
    async def list_students(self, class_id: str) -> List[Student]:
        """Students of a class ordered by attendance number"""

    @abstractmethod
    async def get_students(self, student_ids: List[str]) -> Dict[str, Student]:
        ...

    @abstractmethod
    async def get_material(self, material_id: str) -> Optional[Material]:
        ...

    @abstractmethod
    async def find_material(self, code: str) -> Optional[Material]:
        ...

    @abstractmethod
    async def list_active_materials(self) -> List[Material]:
        ...

    @abstractmethod
    async def get_materials(self, material_ids: List[str]) -> Dict[str, Material]:
        ...

    # ==================== BOOKLETS ====================

    @abstractmethod
    async def find_booklet_by_payload(self, qr_payload: str) -> Optional[Booklet]:
        ...

    @abstractmethod
    async def find_booklet_for(self, student_id: str, material_id: str) -> Optional[Booklet]:
        ...

    @abstractmethod
    async def insert_booklet(self, booklet: Booklet) -> Booklet:
        ...

    # ==================== SUBMISSIONS ====================

    @abstractmethod
    async def get_submission(self, submission_id: str) -> Optional[Submission]:
        ...

    @abstractmethod
    async def find_live_submission(
        self, booklet_id: str, start: datetime, end: datetime
    ) -> Optional[Submission]:
        """Latest non-void submission of the booklet with start <= timestamp <= end"""

    @abstractmethod
    async def insert_submission(self, submission: Submission) -> Submission:
        ...

    @abstractmethod
    async def mark_void(
        self, submission_id: str, reason: str, voided_at: datetime
    ) -> Optional[Submission]:
        """
        Void a live submission. Returns None when nothing was updated
        (missing or already void).
        """

    @abstractmethod
    async def sum_points(
        self, student_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> int:
        ...

    @abstractmethod
    async def student_points(
        self, class_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[StudentPoints]:
        """Unordered per-student sums and latest timestamps of non-void submissions"""

    @abstractmethod
    async def list_live_submissions(
        self, class_id: str, start: datetime, end: datetime
    ) -> List[Submission]:
        ...

    @abstractmethod
    async def recent_submissions(self, class_id: str, limit: int) -> List[Submission]:
        """Non-void submissions, newest first"""

    # ==================== AUDIT ====================

    @abstractmethod
    async def insert_audit(self, log: AuditLog) -> None:
        ...


def _window(start: Optional[datetime], end: Optional[datetime]) -> dict:
    if start is None and end is None:
        return {}
    bounds = {}
    if start is not None:
        bounds["$gte"] = start
    if end is not None:
        bounds["$lte"] = end
    return {"timestamp": bounds}


class MongoRecordStore(RecordStore):
    """RecordStore over the scanboard MongoDB collections"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    # ==================== CATALOG ====================

    async def get_class(self, class_id: str) -> Optional[SchoolClass]:
        doc = await self.db.classes.find_one({"class_id": class_id}, {"_id": 0})
        return SchoolClass(**doc) if doc else None

    async def find_class(self, year: int, class_code: str) -> Optional[SchoolClass]:
        doc = await self.db.classes.find_one({"year": year, "class_code": class_code}, {"_id": 0})
        return SchoolClass(**doc) if doc else None

    async def get_student(self, student_id: str) -> Optional[Student]:
        doc = await self.db.students.find_one({"student_id": student_id}, {"_id": 0})
        return Student(**doc) if doc else None

    async def find_student(self, class_id: str, number: int) -> Optional[Student]:
        doc = await self.db.students.find_one({"class_id": class_id, "number": number}, {"_id": 0})
        return Student(**doc) if doc else None

    async def list_students(self, class_id: str) -> List[Student]:
        cursor = self.db.students.find({"class_id": class_id}, {"_id": 0}).sort("number", 1)
        return [Student(**doc) for doc in await cursor.to_list(length=None)]

    async def get_students(self, student_ids: List[str]) -> Dict[str, Student]:
        cursor = self.db.students.find({"student_id": {"$in": student_ids}}, {"_id": 0})
        docs = await cursor.to_list(length=None)
        return {doc["student_id"]: Student(**doc) for doc in docs}

    async def get_material(self, material_id: str) -> Optional[Material]:
        doc = await self.db.materials.find_one({"material_id": material_id}, {"_id": 0})
        return Material(**doc) if doc else None

    async def find_material(self, code: str) -> Optional[Material]:
        doc = await self.db.materials.find_one({"code": code}, {"_id": 0})
        return Material(**doc) if doc else None

    async def list_active_materials(self) -> List[Material]:
        cursor = self.db.materials.find({"is_active": True}, {"_id": 0}).sort("code", 1)
        return [Material(**doc) for doc in await cursor.to_list(length=None)]

    async def get_materials(self, material_ids: List[str]) -> Dict[str, Material]:
        cursor = self.db.materials.find({"material_id": {"$in": material_ids}}, {"_id": 0})
        docs = await cursor.to_list(length=None)
        return {doc["material_id"]: Material(**doc) for doc in docs}

    # ==================== BOOKLETS ====================

    async def find_booklet_by_payload(self, qr_payload: str) -> Optional[Booklet]:
        doc = await self.db.booklets.find_one({"qr_payload": qr_payload}, {"_id": 0})
        return Booklet(**doc) if doc else None

    async def find_booklet_for(self, student_id: str, material_id: str) -> Optional[Booklet]:
        doc = await self.db.booklets.find_one(
            {"student_id": student_id, "material_id": material_id}, {"_id": 0}
        )
        return Booklet(**doc) if doc else None

    async def insert_booklet(self, booklet: Booklet) -> Booklet:
        try:
            await self.db.booklets.insert_one(booklet.model_dump())
        except DuplicateKeyError as e:
            raise DuplicateRecord("booklets", str(e.details.get("keyValue") if e.details else "")) from e
        return booklet

    # ==================== SUBMISSIONS ====================

    async def get_submission(self, submission_id: str) -> Optional[Submission]:
        doc = await self.db.submissions.find_one({"submission_id": submission_id}, {"_id": 0})
        return Submission(**doc) if doc else None

    async def find_live_submission(
        self, booklet_id: str, start: datetime, end: datetime
    ) -> Optional[Submission]:
        cursor = self.db.submissions.find(
            {
                "booklet_id": booklet_id,
                "is_void": False,
                "timestamp": {"$gte": start, "$lte": end}
            },
            {"_id": 0}
        ).sort("timestamp", -1).limit(1)
        docs = await cursor.to_list(length=1)
        return Submission(**docs[0]) if docs else None

    async def insert_submission(self, submission: Submission) -> Submission:
        try:
            await self.db.submissions.insert_one(submission.model_dump())
        except DuplicateKeyError as e:
            raise DuplicateRecord("submissions", f"{submission.booklet_id}/{submission.school_date}") from e
        return submission

    async def mark_void(
        self, submission_id: str, reason: str, voided_at: datetime
    ) -> Optional[Submission]:
        doc = await self.db.submissions.find_one_and_update(
            {"submission_id": submission_id, "is_void": False},
            {"$set": {"is_void": True, "void_reason": reason, "voided_at": voided_at}},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER
        )
        return Submission(**doc) if doc else None

    async def sum_points(
        self, student_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> int:
        pipeline = [
            {"$match": {"student_id": student_id, "is_void": False, **_window(start, end)}},
            {"$group": {"_id": None, "points": {"$sum": "$points_awarded"}}}
        ]
        results = await self.db.submissions.aggregate(pipeline).to_list(length=1)
        return results[0]["points"] if results else 0

    async def student_points(
        self, class_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[StudentPoints]:
        pipeline = [
            {"$match": {"class_id": class_id, "is_void": False, **_window(start, end)}},
            {"$group": {
                "_id": "$student_id",
                "points": {"$sum": "$points_awarded"},
                "last_submitted_at": {"$max": "$timestamp"}
            }}
        ]
        results = await self.db.submissions.aggregate(pipeline).to_list(length=None)
        return [
            StudentPoints(
                student_id=row["_id"],
                points=row["points"],
                last_submitted_at=row["last_submitted_at"]
            )
            for row in results
        ]

    async def list_live_submissions(
        self, class_id: str, start: datetime, end: datetime
    ) -> List[Submission]:
        cursor = self.db.submissions.find(
            {"class_id": class_id, "is_void": False, **_window(start, end)},
            {"_id": 0}
        ).sort("timestamp", -1)
        return [Submission(**doc) for doc in await cursor.to_list(length=None)]

    async def recent_submissions(self, class_id: str, limit: int) -> List[Submission]:
        # limit(0) means "no limit" to MongoDB
        if limit <= 0:
            return []
        cursor = self.db.submissions.find(
            {"class_id": class_id, "is_void": False},
            {"_id": 0}
        ).sort("timestamp", -1).limit(limit)
        return [Submission(**doc) for doc in await cursor.to_list(length=limit)]

    # ==================== AUDIT ====================

    async def insert_audit(self, log: AuditLog) -> None:
        await self.db.audit_logs.insert_one(log.model_dump())
