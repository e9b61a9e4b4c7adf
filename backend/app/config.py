# app/config.py
import os
from datetime import date

# --- Database / cache ---
DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/unihealth")
REDIS_URL = os.getenv("REDIS_URL", "")
SETTINGS_CACHE_TTL = int(os.getenv("SETTINGS_CACHE_TTL", "3600"))

# --- Auth ---
TOKEN_TTL_DAYS = int(os.getenv("TOKEN_TTL_DAYS", "7"))
RESET_TOKEN_TTL_MINUTES = int(os.getenv("RESET_TOKEN_TTL_MINUTES", "60"))
UNIVERSITY_EMAIL_DOMAINS = [
    d.strip().lower()
    for d in os.getenv("UNIVERSITY_EMAIL_DOMAINS", "university.edu,uni.edu,final.edu.tr,student.edu").split(",")
    if d.strip()
]

# --- Booking window ---
MAX_BOOKING_DATE = date.fromisoformat(os.getenv("MAX_BOOKING_DATE", "2030-12-31"))
PATIENT_RESCHEDULE_MIN_HOURS = int(os.getenv("PATIENT_RESCHEDULE_MIN_HOURS", "24"))
MIN_STUDENT_AGE = 16

# Bookable slots, half-hourly with a lunch break
TIME_SLOTS = [
    "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
    "14:00", "14:30", "15:00", "15:30", "16:00", "16:30",
]

# --- HTTP ---
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
API_VERSION = "1.0.0"
