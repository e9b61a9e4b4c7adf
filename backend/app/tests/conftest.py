# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["REDIS_URL"] = ""

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app import models  # noqa: E402,F401  register every table
from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.enums import Role  # noqa: E402
from app.models.user import Profile, User  # noqa: E402
from app.services.auth_service import hash_password, issue_token  # noqa: E402
from helpers import PASSWORD  # noqa: E402

PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # let SQLAlchemy drive BEGIN/SAVEPOINT itself so nested rollbacks work on pysqlite
    @event.listens_for(engine, "connect")
    def _no_autobegin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(scope="session")
def tables(engine):
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db_session(engine, tables):
    """Provides a transactional scope around each test."""
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, join_transaction_mode="create_savepoint")
    session = SessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def client(db_session):
    def override_get_db():
        try:
            yield db_session
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=Role.STUDENT, complete_profile=True, **fields):
        counter["n"] += 1
        n = counter["n"]
        role = Role(role)
        values = {
            "name": f"{role.label} {n}",
            "email": f"{role.value}{n}@university.edu",
            "password_hash": PASSWORD_HASH,
            "role": role.value,
            "phone": "+90 555 000 0000",
            "department": "Computer Engineering",
            "permissions": [],
        }
        if role == Role.STUDENT:
            values["student_id"] = f"2024{n:04d}"
        elif role == Role.DOCTOR:
            values["specialization"] = "General Medicine"
            values["medical_license_number"] = f"LIC-{n}"
        else:
            values["staff_no"] = f"STF{n:04d}"
        values.update(fields)
        user = User(**values)
        db_session.add(user)
        db_session.flush()
        if complete_profile:
            db_session.add(Profile(
                user_id=user.id,
                date_of_birth=date(2000, 5, 17),
                gender="female",
                blood_type="A+",
                emergency_contact_name="Jamie Doe",
                emergency_contact_phone="+90 555 111 2222",
            ))
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers(db_session):
    def _headers(user):
        token = issue_token(db_session, user)
        db_session.commit()
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def student(make_user):
    return make_user(Role.STUDENT)


@pytest.fixture
def doctor(make_user):
    return make_user(Role.DOCTOR)


@pytest.fixture
def clinical_staff(make_user):
    return make_user(Role.CLINICAL_STAFF)


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN)
