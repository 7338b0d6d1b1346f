import logging
import uuid
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from appraisal_service.models.notification_event import NotificationEvent

logger = logging.getLogger(__name__)

GOAL_PUBLISHED = "GOAL_PUBLISHED"
APPRAISAL_STARTED = "APPRAISAL_STARTED"
REVIEW_DUE = "REVIEW_DUE"
RATING_FINALIZED = "RATING_FINALIZED"
RATING_DISPUTED = "RATING_DISPUTED"


def notify(
    db: Session,
    *,
    recipients: Iterable[uuid.UUID],
    event_type: str,
    title: str,
    message: str,
    entity_type: str | None = None,
    entity_id: uuid.UUID | None = None,
) -> int:
    """
    Queue notifications in the outbox. Fire-and-forget: an outbox failure is
    logged and never propagates into the calling workflow operation.
    Returns the number of events queued.
    """
    recipients = list(dict.fromkeys(r for r in recipients if r is not None))
    if not recipients:
        return 0

    try:
        with db.begin_nested():
            for rid in recipients:
                db.add(
                    NotificationEvent(
                        recipient_employee_id=rid,
                        event_type=event_type,
                        title=title,
                        message=message,
                        entity_type=entity_type,
                        entity_id=entity_id,
                    )
                )
            db.flush()
    except SQLAlchemyError:
        logger.exception("Failed to queue notifications", extra={"event_type": event_type})
        return 0

    logger.info("Queued notifications", extra={"event_type": event_type, "count": len(recipients)})
    return len(recipients)
