# app/models/user.py
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.enums import Role, UserStatus


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(30), nullable=False, index=True)
    status = Column(String(30), nullable=False, default=UserStatus.ACTIVE.value)
    phone = Column(String(30), nullable=True)

    # role-specific identifiers
    student_id = Column(String(20), unique=True, nullable=True)
    staff_no = Column(String(20), unique=True, nullable=True)
    medical_license_number = Column(String(50), nullable=True)
    specialization = Column(String(100), nullable=True)
    faculty = Column(String(100), nullable=True)
    department = Column(String(100), nullable=True)
    department_id = Column(Integer, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)
    doctor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    permissions = Column(JSON, nullable=False, default=list)
    email_verified_at = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)

    # doctor availability
    available_days = Column(JSON, nullable=True)  # weekday names
    working_hours_start = Column(String(5), nullable=True)
    working_hours_end = Column(String(5), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    years_of_experience = Column(Integer, nullable=True)
    bio = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    profile = relationship("Profile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    medical_card = relationship("MedicalCard", back_populates="user", uselist=False, cascade="all, delete-orphan")
    department_ref = relationship("Department", back_populates="users")
    schedule = relationship("StaffSchedule", back_populates="user", uselist=False, cascade="all, delete-orphan")
    tokens = relationship("ApiToken", back_populates="user", cascade="all, delete-orphan")
    assigned_doctor = relationship("User", remote_side=[id])

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    @property
    def display_identifier(self) -> str:
        role = self.role_enum
        if role == Role.STUDENT:
            value = self.student_id
        elif role == Role.DOCTOR:
            value = self.medical_license_number
        else:
            value = self.staff_no
        return value or self.email

    @property
    def full_title(self) -> str:
        role = self.role_enum
        title = self.name
        if role == Role.DOCTOR:
            title = f"Dr. {title}"
            if self.specialization:
                title += f" ({self.specialization})"
        elif role == Role.STUDENT and self.department:
            title += f" - {self.department}"
        elif role == Role.ACADEMIC_STAFF and self.faculty:
            title += f" - {self.faculty}"
        return title

    def __repr__(self):
        return f"<User {self.id} {self.email} ({self.role})>"


class Profile(Base):
    """Demographic and medical metadata, created on the first profile save."""

    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(30), nullable=True)
    blood_type = Column(String(5), nullable=True)
    emergency_contact_name = Column(String(255), nullable=True)
    emergency_contact_phone = Column(String(30), nullable=True)
    emergency_contact_relationship = Column(String(100), nullable=True)
    emergency_contact_email = Column(String(255), nullable=True)
    allergies = Column(Text, nullable=True)
    has_known_allergies = Column(Boolean, nullable=False, default=False)
    allergies_uncertain = Column(Boolean, nullable=False, default=False)
    addictions = Column(Text, nullable=True)
    medical_history = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="profile")


class ApiToken(Base):
    __tablename__ = "api_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, nullable=False)
    name = Column(String(50), nullable=False, default="api-token")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    last_used_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="tokens")


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
