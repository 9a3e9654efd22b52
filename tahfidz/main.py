"""Tahfidz Bootcamp - FastAPI entrypoint."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import ServerSelectionTimeoutError

from tahfidz.config import settings
from tahfidz.db import db_shutdown, db_startup
from tahfidz.exceptions import InfrastructureError, TahfidzError
from tahfidz.repository import get_repositories
from tahfidz.seed import seed_admin
from tahfidz.api import auth, users, students, classes, attendance, memorization, exams, reports, stats

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await db_startup()
        await seed_admin(get_repositories())
    except ServerSelectionTimeoutError as e:
        logger.error(
            "MongoDB is not running. Start it with: docker compose up -d (from project root)"
        )
        raise RuntimeError(
            "MongoDB connection failed. Start MongoDB (e.g. docker compose up -d)."
        ) from e
    yield
    await db_shutdown()


app = FastAPI(
    title=settings.app_name,
    description="Tahfidz bootcamp backend: users, classes, attendance, memorization, exams, report cards",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


@app.exception_handler(TahfidzError)
async def tahfidz_exception_handler(request: Request, exc: TahfidzError):
    if isinstance(exc, InfrastructureError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail, exc_info=exc)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(students.router, prefix="/api/students", tags=["Students"])
app.include_router(classes.router, prefix="/api/classes", tags=["Classes"])
app.include_router(attendance.router, prefix="/api/attendance", tags=["Attendance"])
app.include_router(memorization.router, prefix="/api/tahfidz", tags=["Tahfidz"])
app.include_router(exams.router, prefix="/api/exams", tags=["Exams"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])
app.include_router(stats.router, prefix="/api/stats", tags=["Statistics"])


@app.get("/health")
def health():
    return {"status": "ok", "app": settings.app_name}
