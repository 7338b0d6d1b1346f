# seed_dev.py
from datetime import date

from sqlalchemy.orm import Session

from appraisal_service.db.session import SessionLocal
from appraisal_service.models.appraisal_cycle import AppraisalCycle
from appraisal_service.models.competency import Competency
from appraisal_service.models.employee import Employee
from appraisal_service.models.rbac import ROLE_HR, Role, UserRole
from appraisal_service.models.user import User


# ---------- helpers: RBAC ----------

def get_or_create_role(db: Session, name: str) -> Role:
    r = db.query(Role).filter(Role.name == name).one_or_none()
    if r:
        return r
    r = Role(name=name)
    db.add(r)
    db.commit()
    db.refresh(r)
    return r


def get_or_create_user(db: Session, email: str, full_name: str) -> User:
    u = db.query(User).filter(User.email == email).one_or_none()
    if u:
        # keep these up to date in dev
        if u.full_name != full_name or not u.is_active:
            u.full_name = full_name
            u.is_active = True
            db.commit()
            db.refresh(u)
        return u

    u = User(email=email, full_name=full_name, is_active=True)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def ensure_user_role(db: Session, user_id, role_id):
    ur = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role_id == role_id)
        .one_or_none()
    )
    if ur:
        return ur
    ur = UserRole(user_id=user_id, role_id=role_id)
    db.add(ur)
    db.commit()
    return ur


# ---------- helpers: directory ----------

def get_or_create_employee(db: Session, employee_number: str, display_name: str, user_id, manager_id=None):
    e = db.query(Employee).filter(Employee.employee_number == employee_number).one_or_none()
    if e:
        changed = False
        for attr, value in (("display_name", display_name), ("user_id", user_id), ("manager_id", manager_id)):
            if getattr(e, attr) != value:
                setattr(e, attr, value)
                changed = True
        if changed:
            db.commit()
            db.refresh(e)
        return e

    e = Employee(
        employee_number=employee_number,
        display_name=display_name,
        user_id=user_id,
        manager_id=manager_id,
        is_active=True,
    )
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


# ---------- helpers: catalogue / cycle ----------

def get_or_create_competency(db: Session, *, code: str, name: str, category: str, weightage: int, order: int) -> Competency:
    c = db.query(Competency).filter(Competency.code == code).one_or_none()
    if c:
        return c
    c = Competency(code=code, name=name, category=category, weightage=weightage, display_order=order)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def get_or_create_cycle(db: Session, *, name: str, created_by_user_id) -> AppraisalCycle:
    c = db.query(AppraisalCycle).filter(AppraisalCycle.name == name).one_or_none()
    if c:
        return c
    c = AppraisalCycle(
        name=name,
        cycle_type="ANNUAL",
        review_period_start=date(2026, 1, 1),
        review_period_end=date(2026, 12, 31),
        cycle_start=date(2026, 1, 1),
        cycle_end=date(2026, 12, 31),
        peer_review=True,
        min_peer_reviewers=1,
        max_peer_reviewers=3,
        status="DRAFT",  # activate through the API to fan out appraisals
        created_by_user_id=created_by_user_id,
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


# ---------- main ----------

def main():
    db = SessionLocal()
    try:
        hr_role = get_or_create_role(db, ROLE_HR)

        hr_user = get_or_create_user(db, "hr@local.test", "HR Local")
        ensure_user_role(db, hr_user.id, hr_role.id)

        manager_user = get_or_create_user(db, "manager@local.test", "Manager Local")
        alice_user = get_or_create_user(db, "alice@local.test", "Alice Local")
        bob_user = get_or_create_user(db, "bob@local.test", "Bob Local")

        manager = get_or_create_employee(db, "E100", "Manager Local", manager_user.id)
        alice = get_or_create_employee(db, "E200", "Alice Local", alice_user.id, manager.id)
        bob = get_or_create_employee(db, "E300", "Bob Local", bob_user.id, manager.id)

        for order, (code, name, category, weightage) in enumerate(
            [
                ("COMM", "Communication", "BEHAVIORAL", 20),
                ("CRAFT", "Technical craft", "TECHNICAL", 40),
                ("OWN", "Ownership", "CORE_VALUES", 40),
            ],
            start=1,
        ):
            get_or_create_competency(db, code=code, name=name, category=category, weightage=weightage, order=order)

        cycle = get_or_create_cycle(db, name="FY26 Annual Review", created_by_user_id=hr_user.id)

        print("\n=== DEV SEED COMPLETE ===")
        print("Users:")
        print(f"  hr:      {hr_user.email}")
        print(f"  manager: {manager_user.email} (employee {manager.id})")
        print(f"  alice:   {alice_user.email} (employee {alice.id})")
        print(f"  bob:     {bob_user.email} (employee {bob.id})")

        print("\nCycle:")
        print(f"  cycle_id: {cycle.id} (status={cycle.status})")

        print("\nNext API steps (X-User-Email header):")
        print(f"  POST /appraisals/cycles/{cycle.id}/activate            (as hr@local.test)")
        print("  POST /goal-templates + /metrics/bulk + /publish         (as manager@local.test)")
        print("  PUT  /goal-templates/goals/<goal_id>/submit             (as alice@local.test)")
        print("  POST /appraisals/reviews/<review_id>/submit             (as alice@local.test)")
        print("  PUT  /appraisals/<appraisal_id>/finalize-rating         (as manager@local.test)")

    finally:
        db.close()


if __name__ == "__main__":
    main()
