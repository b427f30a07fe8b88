"""
Scanboard Configuration
Database, timezone and ranking settings
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "scanboard_db")

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

# All day/month boundaries are computed in this zone, never in UTC
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Tokyo")

# QR wire format
QR_PREFIX = "T4|BM|"
QR_MIN_FIELDS = 6

# Rankings
LEADERBOARD_SIZE = int(os.getenv("LEADERBOARD_SIZE", "10"))
RECENT_EVENTS_LIMIT = int(os.getenv("RECENT_EVENTS_LIMIT", "8"))
TIE_BREAK_RULE = "When points are equal, the student whose latest submission came earlier ranks higher"

DEFAULT_VOID_REASON = "manual_undo"

VERSION = os.getenv("VERSION")
