from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv

# ------------------------------------------------------------
# Load .env from PROJECT ROOT
# ------------------------------------------------------------
load_dotenv(dotenv_path=Path(__file__).resolve().parents[2] / ".env")

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from packages.features.agents import router as agents_admin
from packages.features.bookings import router as bookings_admin
from packages.features.payments import router as payments_admin
from packages.features.portal import router as portal
from services.errors import PortalError
from services.gateway.deps import get_settings
from services.gateway.routers import agents_router

BUILD_ID = "agent-portal-v1"

logger = logging.getLogger(__name__)

app = FastAPI(title="Travelopedia Agent Portal (API only)", version="1.0.0")

# Routers
app.include_router(agents_router)
app.include_router(agents_admin.router)
app.include_router(bookings_admin.router)
app.include_router(payments_admin.router)
app.include_router(portal.router)


@app.exception_handler(PortalError)
async def _portal_error(request: Request, exc: PortalError):
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.on_event("startup")
async def _startup_check():
    # Fail fast: missing Supabase or MSG91 credentials must not surface as a mystery 500 later.
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Agent portal starting (persistence=%s)", settings.persistence_backend)


@app.get("/__build")
async def build():
    return {"build": BUILD_ID}


@app.get("/health")
async def health():
    try:
        settings = get_settings()
    except PortalError as exc:
        return {"ok": False, "build": BUILD_ID, "error": exc.message}
    return {
        "ok": True,
        "build": BUILD_ID,
        "persistence": settings.persistence_backend,
        "rollback_policy": settings.rollback_policy,
    }
