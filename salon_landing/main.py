"""FastAPI application entrypoint."""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import text

from salon_landing.api.deps import Session
from salon_landing.api.v1 import v1_router
from salon_landing.core.config import get_settings
from salon_landing.core.database import init_db
from salon_landing.core.logging_config import setup_logging

_settings = get_settings()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup: ensure tables exist (use Alembic in production)
    setup_logging(_settings.log_level)
    await init_db()
    yield


app = FastAPI(
    title="Salon Landing",
    version="0.1.0",
    description="Salon onboarding intake and tenant provisioning",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── API routes ───────────────────────────────────────────────
app.include_router(v1_router)


class DatabaseHealth(BaseModel):
    status: str  # "ok" or "error"
    latency_ms: int | None = None
    detail: str | None = None


class HealthResponse(BaseModel):
    status: str  # "ok" or "degraded"
    database: DatabaseHealth


@app.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check(session: Session) -> HealthResponse:
    try:
        t0 = time.monotonic()
        await session.execute(text("SELECT 1"))
        database = DatabaseHealth(status="ok", latency_ms=int((time.monotonic() - t0) * 1000))
    except Exception as exc:
        database = DatabaseHealth(status="error", detail=str(exc)[:200])
    return HealthResponse(
        status="ok" if database.status == "ok" else "degraded", database=database
    )
