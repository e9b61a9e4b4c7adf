# app/endpoints/public.py
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.config import API_VERSION
from app.database import get_db
from app.services import settings_service
from app.services.permissions import role_catalogue

router = APIRouter(tags=["public"])


@router.get("/")
def root():
    return {"message": "University Health API is running"}


@router.get("/health")
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok", "version": API_VERSION, "timestamp": datetime.utcnow().isoformat()}


@router.get("/roles")
def roles():
    return {"roles": [{"value": r["value"], "label": r["label"]} for r in role_catalogue()]}


@router.get("/clinic-settings")
def clinic_settings(db: Session = Depends(get_db)):
    return settings_service.get_clinic_settings(db).model_dump(mode="json")
