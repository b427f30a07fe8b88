from motor.motor_asyncio import AsyncIOMotorClient
import logging

from scanboard.config import MONGO_URL, MONGO_DB_NAME

logger = logging.getLogger(__name__)

# tz_aware: timestamps come back as UTC-aware datetimes for day/month math
client = AsyncIOMotorClient(MONGO_URL, tz_aware=True)
db = client[MONGO_DB_NAME]


async def create_scanboard_indexes():
    """
    Create database indexes, including the unique keys that make
    booklet binding and same-day submissions safe under concurrent scans.
    Called during application startup
    """

    # Catalog
    await db.classes.create_index("class_id", unique=True)
    await db.classes.create_index([("year", 1), ("class_code", 1)], unique=True)
    await db.students.create_index("student_id", unique=True)
    await db.students.create_index([("class_id", 1), ("number", 1)], unique=True)
    await db.materials.create_index("material_id", unique=True)
    await db.materials.create_index("code", unique=True)

    # Booklets: one per payload, one per (student, material)
    await db.booklets.create_index("booklet_id", unique=True)
    await db.booklets.create_index("qr_payload", unique=True)
    await db.booklets.create_index([("student_id", 1), ("material_id", 1)], unique=True)

    # Submissions: at most one live row per booklet per school-local day
    await db.submissions.create_index("submission_id", unique=True)
    await db.submissions.create_index(
        [("booklet_id", 1), ("school_date", 1)],
        unique=True,
        partialFilterExpression={"is_void": False},
        name="one_live_submission_per_booklet_day"
    )
    await db.submissions.create_index([("booklet_id", 1), ("timestamp", -1)])
    await db.submissions.create_index([("student_id", 1), ("is_void", 1), ("timestamp", 1)])
    await db.submissions.create_index([("class_id", 1), ("is_void", 1), ("timestamp", -1)])

    # Audit logs
    await db.audit_logs.create_index([("target_type", 1), ("target_id", 1)])
    await db.audit_logs.create_index("timestamp")

    logger.info("Scanboard indexes created")
