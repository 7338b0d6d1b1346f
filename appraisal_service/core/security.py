import logging

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from appraisal_service.db.session import get_db
from appraisal_service.models.user import User

logger = logging.getLogger(__name__)


def get_current_user(
    x_user_email: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """
    DEV AUTH: the X-User-Email header names the logged-in user.
    Example: X-User-Email: hr@local.test
    """
    email = (x_user_email or "").strip().lower()
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Email header (dev auth)",
        )

    user = db.query(User).filter(func.lower(User.email) == email).one_or_none()
    if not user or not user.is_active:
        logger.warning("Rejected dev auth header", extra={"email": email})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or inactive user")
    return user
