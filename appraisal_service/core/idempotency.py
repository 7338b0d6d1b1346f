import hashlib
import json
import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appraisal_service.core.exceptions import InvalidStateError, ValidationError
from appraisal_service.models.idempotency import IdempotencyKey
from appraisal_service.models.user import User

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 128


def request_fingerprint(method: str, route: str, payload: Any | None) -> str:
    """Same key + different endpoint or body must not replay someone else's response."""
    raw = json.dumps({"method": method, "route": route, "payload": payload}, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _find(db: Session, user: User, key: str) -> IdempotencyKey | None:
    return (
        db.query(IdempotencyKey)
        .filter(IdempotencyKey.user_id == user.id, IdempotencyKey.key == key)
        .one_or_none()
    )


def is_replay(row: IdempotencyKey) -> bool:
    return row.status == "COMPLETED"


def begin_idempotent_request(
    *,
    db: Session,
    user: User,
    key: str,
    method: str,
    route: str,
    payload_for_hash: Any | None = None,
) -> IdempotencyKey:
    """
    Claims an Idempotency-Key for this user. The returned row is either
    COMPLETED (replay its stored response) or IN_PROGRESS (run the operation,
    then complete or fail it). A key still IN_PROGRESS elsewhere is a 409.
    """
    key = key.strip()
    if not key or len(key) > MAX_KEY_LENGTH:
        raise ValidationError(f"Idempotency-Key must be 1-{MAX_KEY_LENGTH} characters")

    fingerprint = request_fingerprint(method, route, payload_for_hash)

    existing = _find(db, user, key)
    if existing:
        if existing.request_hash != fingerprint:
            raise InvalidStateError("Idempotency-Key was already used for a different request")
        if is_replay(existing):
            logger.info("Replaying idempotent response", extra={"route": route, "key": key})
            return existing
        if existing.status == "IN_PROGRESS":
            raise InvalidStateError("Request with this Idempotency-Key is already in progress")

        # previous attempt FAILED; this one retries it
        existing.status = "IN_PROGRESS"
        existing.updated_at = datetime.utcnow()
        db.commit()
        return existing

    row = IdempotencyKey(
        user_id=user.id,
        key=key,
        method=method,
        route=route,
        request_hash=fingerprint,
        status="IN_PROGRESS",
    )
    try:
        with db.begin_nested():
            db.add(row)
            db.flush()
    except IntegrityError:
        # a concurrent request claimed the key first
        winner = _find(db, user, key)
        if winner is not None and is_replay(winner):
            return winner
        raise InvalidStateError("Request with this Idempotency-Key is already in progress")

    db.commit()
    return row


def complete_idempotent_request(
    *,
    db: Session,
    row: IdempotencyKey,
    response_code: int,
    response_body: dict | list | None,
):
    row.status = "COMPLETED"
    row.response_code = response_code
    row.response_body = response_body
    row.updated_at = datetime.utcnow()
    db.flush()


def fail_idempotent_request(db: Session, row: IdempotencyKey):
    row.status = "FAILED"
    row.updated_at = datetime.utcnow()
    db.commit()
