# Admissions pipeline service entrypoint.

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from admissions.app.api import analytics, login, public, tours, waitlist
from admissions.app.core.dev_seed import ensure_default_dev_admin
from admissions.app.core.errors import AdmissionsError, InternalError
from admissions.app.core.logging import clear_context, get_logger, setup_logging
from admissions.app.core.settings import get_settings
from admissions.app.db.session import SessionLocal

settings = get_settings()
setup_logging(settings)
logger = get_logger(__name__)

app = FastAPI(title=settings.app_name, version=settings.api_version)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(login.router)
app.include_router(waitlist.router)
app.include_router(tours.router)
app.include_router(analytics.router)
app.include_router(public.router)


@app.middleware("http")
async def reset_log_context(request: Request, call_next):
    clear_context()
    return await call_next(request)


@app.exception_handler(AdmissionsError)
async def admissions_error_handler(request: Request, exc: AdmissionsError):
    log = logger.error if exc.status_code >= 500 else logger.info
    log("request_failed", path=request.url.path, code=exc.code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database_error", path=request.url.path, error=str(exc))
    error = InternalError("Database operation failed", details={"type": type(exc).__name__})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/")
def read_root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok", "version": settings.api_version}


@app.on_event("startup")
def seed_default_dev_admin():
    db = SessionLocal()
    try:
        ensure_default_dev_admin(db)
    finally:
        db.close()
