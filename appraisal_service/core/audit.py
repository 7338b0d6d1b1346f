import logging
from typing import Any

from sqlalchemy.orm import Session

from appraisal_service.models.audit_event import AuditEvent
from appraisal_service.models.user import User

logger = logging.getLogger(__name__)


def log_event(
    *,
    db: Session,
    actor: User | None,
    action: str,
    entity_type: str,
    entity_id,
    metadata: dict[str, Any] | None = None,
):
    event = AuditEvent(
        actor_user_id=actor.id if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        event_metadata=metadata,
    )
    db.add(event)
    logger.info(
        action,
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "actor": actor.email if actor else None,
        },
    )
