# backend/plantdb/main.py
import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .apps.maintenance_plans.router import router as maintenance_plans_router
from .apps.maintenance_plans.router import yearly_router as yearly_plans_router
from .apps.maintenance_plans.scheduler import start_maintenance_scheduler

logger = logging.getLogger(__name__)


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://localhost:5000",
    ]


def _scheduler_enabled() -> bool:
    return os.getenv("MAINTENANCE_SCHEDULER_ENABLED", "true").strip().lower() in {"1", "true", "yes", "on"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    if _scheduler_enabled():
        start_maintenance_scheduler()
    else:
        logger.info("Maintenance reminder scheduler disabled by MAINTENANCE_SCHEDULER_ENABLED")
    yield


app = FastAPI(title="Plant Maintenance API", version="1.0.0", lifespan=lifespan)
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(maintenance_plans_router)
app.include_router(yearly_plans_router)
