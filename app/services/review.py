import logging
from typing import Optional
from datetime import datetime

from app.models import MediaRecord, RecordStatus

logger = logging.getLogger(__name__)


class ReviewStateMachine:
    """Validates and applies moderation status transitions with audit history."""

    VALID_TRANSITIONS = {
        RecordStatus.PENDING: {RecordStatus.APPROVED, RecordStatus.REJECTED},
        RecordStatus.APPROVED: set(),
        RecordStatus.REJECTED: set(),
    }

    @staticmethod
    def transition(record: MediaRecord, new_status: RecordStatus, reviewed_by: str,
                   notes: Optional[str] = None):
        current = RecordStatus(record.status)
        new_status = RecordStatus(new_status)
        if new_status not in ReviewStateMachine.VALID_TRANSITIONS.get(current, set()):
            raise ValueError(f"Invalid transition: {current.value} -> {new_status.value}")

        now = datetime.now()
        if record.history is None:
            record.history = []
        record.history.append({
            "from": current.value,
            "to": new_status.value,
            "timestamp": now.isoformat(),
            "reviewed_by": reviewed_by,
            "notes": notes or ""
        })

        record.status = new_status.value
        record.reviewed = True
        record.reviewed_by = reviewed_by
        record.reviewed_at = now
        record.review_notes = notes
        record.updated_at = now
        logger.info(f"Record {record.uid} {current.value} -> {new_status.value} by {reviewed_by}")
