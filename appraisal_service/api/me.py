from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from appraisal_service.core.access import get_employee_for_user
from appraisal_service.core.rbac import get_user_role_names
from appraisal_service.core.security import get_current_user
from appraisal_service.db.session import get_db
from appraisal_service.models.user import User
from appraisal_service.services.directory import list_direct_reports

router = APIRouter(tags=["auth"])


@router.get("/me")
def me(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Current user with roles, linked employee and direct-report count."""
    employee = get_employee_for_user(db, current_user)
    return {
        "id": str(current_user.id),
        "email": current_user.email,
        "full_name": current_user.full_name,
        "is_active": current_user.is_active,
        "roles": sorted(get_user_role_names(db, current_user)),
        "employee_id": str(employee.id) if employee else None,
        "manager_id": str(employee.manager_id) if employee and employee.manager_id else None,
        "direct_reports": len(list_direct_reports(db, employee.id)) if employee else 0,
    }
