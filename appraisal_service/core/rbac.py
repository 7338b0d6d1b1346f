from fastapi import Depends
from sqlalchemy.orm import Session

from appraisal_service.core.exceptions import AuthorizationError
from appraisal_service.core.security import get_current_user
from appraisal_service.db.session import get_db
from appraisal_service.models.user import User
from appraisal_service.models.rbac import ROLE_ADMIN, ROLE_HR, Role, UserRole


def get_user_role_names(db: Session, user: User) -> set[str]:
    rows = (
        db.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user.id)
        .all()
    )
    return {r[0] for r in rows}


def is_hr(db: Session, user: User) -> bool:
    return bool(get_user_role_names(db, user) & {ROLE_ADMIN, ROLE_HR})


def require_roles(*required: str):
    """
    Usage:
      Depends(require_roles("ADMIN"))
      Depends(require_roles("ADMIN", "HR"))  # any-of
    """
    required_set = set(required)

    def _dep(
        db: Session = Depends(get_db),
        user: User = Depends(get_current_user),
    ) -> User:
        role_names = get_user_role_names(db, user)
        if not (role_names & required_set):
            raise AuthorizationError(f"Forbidden. Requires one of: {sorted(required_set)}")
        return user

    return _dep
