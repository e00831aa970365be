"""Health check endpoints.

Mounted at the root, outside BASE_PATH, so probes do not depend on the
deployment prefix.
"""

from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel

from core import __version__


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    base_path: str
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Report whether /init has stored a webhook link."""
    state = request.app.state
    link = await state.link_store.load()
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        base_path=state.settings.base_path,
        services={
            "api": "up",
            "bitrix_webhook": "configured" if link else "not_configured",
        },
    )


@router.get("/ready")
async def readiness_check() -> Dict[str, str]:
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    return {"status": "alive"}
