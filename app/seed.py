from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.db.session import SessionLocal
from app.models.department import Department
from app.models.enums import DepartmentType
from app.models.user import User, UserDepartmentAssignment


def seed():
    db: Session = SessionLocal()

    colleges = {
        "College of Education": ["Bachelor of Elementary Education", "Bachelor of Secondary Education"],
        "College of Engineering": ["BSIT", "BSCE"],
        "Registrar": [],
    }

    try:
        for college, subs in colleges.items():
            root = Department(
                name=college,
                type=(DepartmentType.office if not subs else DepartmentType.college).value,
            )
            db.add(root)
            db.flush()

            for sub in subs:
                db.add(
                    Department(
                        name=sub,
                        type=DepartmentType.sub_department.value,
                        parent_id=root.id,
                    )
                )

            admin = User(
                username=f"admin_{root.id}",
                display_name=f"{college} Admin",
                password_hash=hash_password("changeme"),
            )
            db.add(admin)
            db.flush()
            db.add(UserDepartmentAssignment(user_id=admin.id, department_id=root.id))

        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    seed()
