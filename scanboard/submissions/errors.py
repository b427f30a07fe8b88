"""
Domain errors for scan ingestion and ranking

Every fatal error carries a human-readable message and the HTTP status
the routers answer with. Non-fatal results (duplicate, not found) are
outcome variants, not exceptions.
"""


class ScanboardError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedPayload(ScanboardError):
    """QR text does not have the T4|BM| shape"""


class WrongClassScan(ScanboardError):
    """Scanned student belongs to another class than the one selected"""

    def __init__(self, message: str = "This QR belongs to a student outside the selected class."):
        super().__init__(message)


class MissingPagesForSelfStudy(ScanboardError):
    def __init__(self, message: str = "Self-study materials need a page count greater than 0."):
        super().__init__(message)


class NonSchoolDay(ScanboardError):
    def __init__(self, school_date: str):
        super().__init__(f"{school_date} is a weekend. Pick a weekday for submissions.")
        self.school_date = school_date


class Conflict(ScanboardError):
    status_code = 409


class NotFound(ScanboardError):
    status_code = 404


class DuplicateRecord(Exception):
    """
    Raised by a RecordStore when an insert violates a unique key.
    Components translate it into DuplicateForDay or Conflict.
    """

    def __init__(self, collection: str, key: str = ""):
        super().__init__(f"duplicate key in {collection}: {key}")
        self.collection = collection
        self.key = key
