from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.dependencies import get_current_admin
from storefront.models import User, get_db
from storefront.schemas.notifications import QueueRunResponse
from storefront.services import email_service
from storefront.services.notification_queue import process_pending

router = APIRouter()


@router.post(
    "/process-queue",
    response_model=QueueRunResponse,
    summary="Send one batch of queued notifications (admin)",
)
def process_queue(
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    """Meant to be called by an external scheduler; each call handles one batch."""
    result = process_pending(
        db,
        sender=email_service.send_notification,
        batch_size=settings.NOTIFICATION_BATCH_SIZE,
        max_retries=settings.NOTIFICATION_MAX_RETRIES,
    )
    message = "Queue processing completed" if result.total else "No pending notifications"
    return QueueRunResponse(
        message=message,
        processed=result.processed,
        failed=result.failed,
        total=result.total,
    )
