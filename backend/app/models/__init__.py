# app/models/__init__.py
# Import every ORM module so Base.metadata knows all tables.
from app.models import user, scheduling, appointment, clinical, notification, settings  # noqa: F401
