# seed_clinic.py
from datetime import date

from app import models  # noqa: F401
from app.database import Base, SessionLocal, engine
from app.models.scheduling import AcademicHoliday, Department, StaffSchedule
from app.models.user import Profile, User
from app.services import settings_service
from app.services.auth_service import hash_password

DEMO_PASSWORD = "Password123"

DEPARTMENTS = [
    {"name": "General Medicine", "code": "GM", "type": "medical"},
    {"name": "Cardiology", "code": "CARD", "type": "medical"},
    {"name": "Health Center Administration", "code": "ADM", "type": "administrative"},
]

USERS = [
    {"name": "Super Admin", "email": "superadmin@university.edu", "role": "superadmin", "staff_no": "SA0001"},
    {"name": "Clinic Admin", "email": "admin@university.edu", "role": "admin", "staff_no": "AD0001",
     "department": "ADM"},
    {"name": "Ayse Kaya", "email": "dr.kaya@university.edu", "role": "doctor", "specialization": "General Medicine",
     "medical_license_number": "LIC-1001", "department": "GM", "working_days": [1, 2, 3, 4, 5]},
    {"name": "Mehmet Demir", "email": "dr.demir@university.edu", "role": "doctor", "specialization": "Cardiology",
     "medical_license_number": "LIC-1002", "department": "CARD", "working_days": [1, 3, 5]},
    {"name": "Elif Nurse", "email": "nurse@university.edu", "role": "clinical_staff", "staff_no": "CS0001",
     "department": "GM", "working_days": [1, 2, 3, 4, 5, 6]},
    {"name": "Ali Student", "email": "student@university.edu", "role": "student", "student_id": "20240001",
     "department": "Computer Engineering"},
    {"name": "Prof. Zeynep Lecturer", "email": "lecturer@university.edu", "role": "academic_staff",
     "staff_no": "AC0001", "faculty": "Engineering", "department": "Computer Engineering"},
]

HOLIDAYS = [
    {"name": "New Year's Day", "start_date": date(2026, 1, 1), "end_date": date(2026, 1, 1),
     "type": "national_holiday"},
    {"name": "Spring Break", "start_date": date(2026, 4, 6), "end_date": date(2026, 4, 10),
     "type": "semester_break", "affects_staff_type": "academic", "blocks_appointments": False},
    {"name": "Clinic Maintenance", "start_date": date(2026, 8, 17), "end_date": date(2026, 8, 18),
     "type": "maintenance", "affects_staff_type": "clinical"},
]

Base.metadata.create_all(bind=engine)
db = SessionLocal()

try:
    departments = {}
    for data in DEPARTMENTS:
        dept = db.query(Department).filter(Department.code == data["code"]).first()
        if dept is None:
            dept = Department(**data)
            db.add(dept)
            db.flush()
            print(f"✅ Seeded department {dept.code} -> {dept.name}")
        departments[dept.code] = dept

    for data in USERS:
        data = dict(data)
        if db.query(User).filter(User.email == data["email"]).first():
            print(f"⏭️ {data['email']} already exists")
            continue
        working_days = data.pop("working_days", None)
        dept = departments.get(data.get("department"))
        if dept is not None:
            data["department"] = dept.name
            data["department_id"] = dept.id
        user = User(**data, password_hash=hash_password(DEMO_PASSWORD), permissions=[])
        db.add(user)
        db.flush()
        if working_days:
            db.add(StaffSchedule(user_id=user.id, department_id=user.department_id, working_days=working_days))
        if user.role in ("student", "academic_staff"):
            db.add(Profile(
                user_id=user.id, date_of_birth=date(2001, 9, 1), gender="male", blood_type="O+",
                emergency_contact_name="Family Contact", emergency_contact_phone="+90 555 000 1122",
            ))
        user.phone = user.phone or "+90 555 000 0000"
        print(f"✅ Seeded {user.role} {user.email}")

    for data in HOLIDAYS:
        if db.query(AcademicHoliday).filter(AcademicHoliday.name == data["name"]).first():
            continue
        db.add(AcademicHoliday(**data, academic_year=data["start_date"].year, source="seed"))
        print(f"✅ Seeded holiday {data['name']}")

    db.commit()
    settings_service.get_instance(db)
    settings_service.get_clinic_settings(db)
    db.commit()
finally:
    db.close()

print(f"🎉 Clinic seeding completed! Demo password: {DEMO_PASSWORD}")
