"""Outbound notification queue.

Rows are claimed oldest-first, marked processing, handed to a sender and then
marked completed or failed. A failed row is picked up again by a later run
until its retry_count reaches the configured limit.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from pydantic import TypeAdapter
from sqlalchemy.orm import Session

from storefront.models import NotificationQueueItem
from storefront.schemas.notifications import NotificationPayload
from storefront.services.order_workflow import utcnow

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

DEFAULT_BATCH_SIZE = 10
DEFAULT_MAX_RETRIES = 3

_payload_adapter = TypeAdapter(NotificationPayload)


@dataclass(frozen=True)
class QueueRunResult:
    processed: int
    failed: int
    total: int


def enqueue_notification(db: Session, payload: NotificationPayload) -> NotificationQueueItem:
    """Add a pending row; the caller commits."""
    item = NotificationQueueItem(
        kind=payload.kind,
        payload=payload.model_dump(mode="json"),
        status=STATUS_PENDING,
        retry_count=0,
    )
    db.add(item)
    db.flush()
    return item


def parse_payload(item: NotificationQueueItem) -> NotificationPayload:
    return _payload_adapter.validate_python(item.payload)


def process_pending(
    db: Session,
    sender: Callable[[NotificationPayload], None],
    batch_size: int = DEFAULT_BATCH_SIZE,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> QueueRunResult:
    items = (
        db.query(NotificationQueueItem)
        .filter(
            NotificationQueueItem.status.in_([STATUS_PENDING, STATUS_FAILED]),
            NotificationQueueItem.retry_count < max_retries,
        )
        .order_by(NotificationQueueItem.created_at, NotificationQueueItem.id)
        .limit(batch_size)
        .all()
    )

    processed = 0
    failed = 0
    for item in items:
        item.status = STATUS_PROCESSING
        item.processed_at = utcnow()
        db.commit()

        try:
            sender(parse_payload(item))
        except Exception as exc:
            item.status = STATUS_FAILED
            item.retry_count = (item.retry_count or 0) + 1
            item.error_message = str(exc)[:2000]
            item.processed_at = utcnow()
            db.commit()
            failed += 1
            logger.warning(
                "Notification %s failed (attempt %s/%s): %s",
                item.id,
                item.retry_count,
                max_retries,
                exc,
                exc_info=True,
            )
            continue

        item.status = STATUS_COMPLETED
        item.error_message = None
        item.processed_at = utcnow()
        db.commit()
        processed += 1

    if items:
        logger.info("Notification queue run: processed=%s failed=%s total=%s", processed, failed, len(items))
    return QueueRunResult(processed=processed, failed=failed, total=len(items))
