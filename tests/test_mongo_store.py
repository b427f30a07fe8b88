import asyncio
from datetime import datetime, timezone

import pytest
from pymongo.errors import DuplicateKeyError

from scanboard.submissions.errors import DuplicateRecord
from scanboard.submissions.models import Booklet, Submission
from scanboard.submissions.store import MongoRecordStore


class RecordingCursor:
    def __init__(self, docs):
        self.docs = docs
        self.sorts = []
        self.limits = []

    def sort(self, key, direction):
        self.sorts.append((key, direction))
        return self

    def limit(self, n):
        self.limits.append(n)
        return self

    async def to_list(self, length=None):
        return list(self.docs)


class RecordingCollection:
    """Just enough of a Motor collection to observe the queries MongoRecordStore sends"""

    def __init__(self, docs=None, insert_error=None):
        self.docs = docs or []
        self.insert_error = insert_error
        self.inserted = []
        self.pipelines = []
        self.finds = []

    async def insert_one(self, doc):
        if self.insert_error:
            raise self.insert_error
        self.inserted.append(doc)

    def find(self, query, projection=None):
        self.finds.append((query, projection))
        return RecordingCursor(self.docs)

    def aggregate(self, pipeline):
        self.pipelines.append(pipeline)
        return RecordingCursor(self.docs)


class RecordingDb:
    def __init__(self, **collections):
        self.booklets = collections.get("booklets", RecordingCollection())
        self.submissions = collections.get("submissions", RecordingCollection())


def duplicate_key(key_value):
    return DuplicateKeyError(
        "E11000 duplicate key error", code=11000, details={"keyValue": key_value}
    )


def make_submission():
    return Submission(
        submission_id="SUB_1",
        booklet_id="BKL_1",
        class_id="CLS_3A",
        student_id="STU_3A_01",
        material_id="MAT_KANJI",
        timestamp=datetime(2026, 10, 20, 0, 0, tzinfo=timezone.utc),
        school_date="2026-10-20",
        points_awarded=1
    )

# ==================== UNIQUE KEYS ====================

def test_booklet_duplicate_key_becomes_duplicate_record():
    booklets = RecordingCollection(insert_error=duplicate_key({"qr_payload": "T4|BM|2026|3A|001|KANJI"}))
    store = MongoRecordStore(RecordingDb(booklets=booklets))
    booklet = Booklet(
        booklet_id="BKL_1", student_id="STU_3A_01", material_id="MAT_KANJI",
        qr_payload="T4|BM|2026|3A|001|KANJI"
    )

    with pytest.raises(DuplicateRecord) as exc:
        asyncio.run(store.insert_booklet(booklet))
    assert exc.value.collection == "booklets"
    assert "T4|BM|2026|3A|001|KANJI" in exc.value.key


def test_submission_duplicate_key_becomes_duplicate_record():
    submissions = RecordingCollection(insert_error=duplicate_key({"booklet_id": "BKL_1"}))
    store = MongoRecordStore(RecordingDb(submissions=submissions))

    with pytest.raises(DuplicateRecord) as exc:
        asyncio.run(store.insert_submission(make_submission()))
    assert exc.value.collection == "submissions"
    assert exc.value.key == "BKL_1/2026-10-20"


def test_insert_submission_writes_plain_document():
    submissions = RecordingCollection()
    store = MongoRecordStore(RecordingDb(submissions=submissions))

    asyncio.run(store.insert_submission(make_submission()))
    assert submissions.inserted[0]["submission_id"] == "SUB_1"
    assert submissions.inserted[0]["is_void"] is False

# ==================== AGGREGATIONS ====================

def test_student_points_groups_live_rows_in_window():
    last = datetime(2026, 10, 20, 2, 0, tzinfo=timezone.utc)
    submissions = RecordingCollection(docs=[
        {"_id": "STU_3A_01", "points": 5, "last_submitted_at": last}
    ])
    store = MongoRecordStore(RecordingDb(submissions=submissions))
    start = datetime(2026, 9, 30, 15, 0, tzinfo=timezone.utc)
    end = datetime(2026, 10, 31, 14, 59, 59, 999000, tzinfo=timezone.utc)

    rows = asyncio.run(store.student_points("CLS_3A", start, end))

    assert [(r.student_id, r.points, r.last_submitted_at) for r in rows] == [("STU_3A_01", 5, last)]
    match, group = submissions.pipelines[0]
    assert match["$match"] == {
        "class_id": "CLS_3A",
        "is_void": False,
        "timestamp": {"$gte": start, "$lte": end}
    }
    assert group["$group"]["points"] == {"$sum": "$points_awarded"}
    assert group["$group"]["last_submitted_at"] == {"$max": "$timestamp"}


def test_sum_points_without_rows_is_zero():
    submissions = RecordingCollection()
    store = MongoRecordStore(RecordingDb(submissions=submissions))

    assert asyncio.run(store.sum_points("STU_3A_01")) == 0
    assert submissions.pipelines[0][0]["$match"] == {"student_id": "STU_3A_01", "is_void": False}


def test_recent_submissions_sorts_newest_first_and_limits():
    submissions = RecordingCollection(docs=[make_submission().model_dump()])
    store = MongoRecordStore(RecordingDb(submissions=submissions))

    rows = asyncio.run(store.recent_submissions("CLS_3A", 5))
    assert [r.submission_id for r in rows] == ["SUB_1"]
    assert submissions.finds[0][0] == {"class_id": "CLS_3A", "is_void": False}


@pytest.mark.parametrize("limit", [0, -1])
def test_recent_submissions_non_positive_limit_skips_query(limit):
    submissions = RecordingCollection(docs=[make_submission().model_dump()])
    store = MongoRecordStore(RecordingDb(submissions=submissions))

    assert asyncio.run(store.recent_submissions("CLS_3A", limit)) == []
    assert submissions.finds == []
