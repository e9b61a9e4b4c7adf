# app/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import models  # noqa: F401  registers every table on Base.metadata
from app.config import ALLOWED_ORIGINS, API_VERSION, LOG_LEVEL
from app.database import Base, engine
from app.endpoints.admin import router as admin_router
from app.endpoints.appointments import router as appointments_router
from app.endpoints.auth import router as auth_router
from app.endpoints.clinical import router as clinical_router
from app.endpoints.doctor import router as doctor_router
from app.endpoints.notifications import router as notifications_router
from app.endpoints.patients import academic_staff_router, student_router
from app.endpoints.public import router as public_router
from app.endpoints.superadmin import router as superadmin_router
from app.exceptions import ClinicError, field_errors

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="University Health API", version=API_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup_event():
    # Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database tables ready")


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"message": "Validation failed", "errors": field_errors(exc.errors())},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"💥 Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": "An unexpected error occurred"})


# Include HTTP routers
app.include_router(public_router)
app.include_router(auth_router)
app.include_router(appointments_router)
app.include_router(student_router)
app.include_router(academic_staff_router)
app.include_router(doctor_router)
app.include_router(clinical_router)
app.include_router(admin_router)
app.include_router(superadmin_router)
app.include_router(notifications_router)
