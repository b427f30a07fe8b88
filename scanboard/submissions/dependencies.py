from motor.motor_asyncio import AsyncIOMotorDatabase
from fastapi import Depends

from scanboard.submissions.school_clock import SchoolClock
from scanboard.submissions.store import MongoRecordStore, RecordStore


def get_db_instance():
    """Get database from the shared client module"""
    from scanboard.database import db
    return db

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return get_db_instance()

async def get_store(db: AsyncIOMotorDatabase = Depends(get_db)) -> RecordStore:
    """Record store dependency, overridden with an in-memory store in tests"""
    return MongoRecordStore(db)

async def get_clock() -> SchoolClock:
    """Clock in APP_TIMEZONE"""
    return SchoolClock()
