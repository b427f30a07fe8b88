from typing import Optional

from scanboard.submissions.models import AuditLog, utc_now
from scanboard.submissions.store import RecordStore


async def log_audit(
    store: RecordStore,
    action: str,
    target_type: str,
    target_id: str,
    metadata: Optional[dict] = None
):
    """
    Record an operator action that changes the ledger

    Args:
        store: RecordStore to write to
        action: Action performed (e.g., 'void_submission', 'rescue_binding')
        target_type: Resource type (e.g., 'submission', 'booklet', 'class')
        target_id: ID of the resource
        metadata: Additional context (optional)
    """
    await store.insert_audit(AuditLog(
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
        timestamp=utc_now()
    ))
