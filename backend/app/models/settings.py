# app/models/settings.py
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, JSON

from app.database import Base


class SystemSetting(Base):
    """Single-row table; one JSON column per settings section."""

    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True)
    general = Column(JSON, nullable=True)
    authentication = Column(JSON, nullable=True)
    email = Column(JSON, nullable=True)
    file_uploads = Column(JSON, nullable=True)
    security = Column(JSON, nullable=True)
    backup = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ClinicSettings(Base):
    __tablename__ = "clinic_settings"

    id = Column(Integer, primary_key=True)
    settings_data = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
