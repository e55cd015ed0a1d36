"""
OD Tracker — On-Duty leave request approval service
FastAPI entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from odtrack.core.config import settings
from odtrack.core.dependencies import get_sweeper
from odtrack.core.exceptions import ODTrackError
from odtrack.core.logging_config import logger, setup_logging
from odtrack.core.middleware import RequestContextMiddleware
from odtrack.routers import auth, admin, faculty, hod, student, od
from odtrack.utils.response import error_response

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_FORWARD_SWEEP_ON_STARTUP:
        await get_sweeper().start()
    else:
        logger.info("Auto-forward sweeper not started (AUTO_FORWARD_SWEEP_ON_STARTUP=false)")
    yield
    if settings.AUTO_FORWARD_SWEEP_ON_STARTUP:
        await get_sweeper().stop()


app = FastAPI(
    title=settings.APP_NAME,
    description="On-Duty leave request tracking with advisor / HOD approval chain",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request id + access log
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(ODTrackError)
async def odtrack_error_handler(request: Request, exc: ODTrackError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(message=exc.message, data={"code": exc.code, "details": exc.details}),
    )


# Include routers
app.include_router(auth.router)
app.include_router(student.router)
app.include_router(faculty.router)
app.include_router(hod.router)
app.include_router(admin.router)
app.include_router(od.router)


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "status": "running",
        "auth_mode": settings.AUTH_MODE,
        "storage_backend": settings.STORAGE_BACKEND,
    }


@app.get("/api/health")
async def health():
    return {"status": "healthy", "auth_mode": settings.AUTH_MODE}
