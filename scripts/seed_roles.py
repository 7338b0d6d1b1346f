from appraisal_service.db.session import SessionLocal
from appraisal_service.models.rbac import ROLE_ADMIN, ROLE_HR, Role

ROLE_NAMES = [ROLE_ADMIN, ROLE_HR]


def main():
    db = SessionLocal()
    try:
        existing = {r.name for r in db.query(Role).all()}
        to_add = [Role(name=name) for name in ROLE_NAMES if name not in existing]
        if to_add:
            db.add_all(to_add)
            db.commit()
        print("Roles seeded:", ROLE_NAMES)
    finally:
        db.close()


if __name__ == "__main__":
    main()
