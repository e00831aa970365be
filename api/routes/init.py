"""Webhook initialization endpoint.

POST {base}/init stores the Bitrix inbound-webhook link encrypted under a
freshly generated key and IV. Rate limited per client.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from api.rate_limit import init_rate_limit
from core.errors import ValidationError
from core.observability.logging import get_logger, log_message
from core.security.link_store import initialize_link

logger = get_logger(__name__)

router = APIRouter()


class InitRequest(BaseModel):
    """Request to store the webhook link."""
    bx_link: Optional[str] = Field(
        None,
        description="Inbound webhook URL, e.g. https://portal.bitrix24.kz/rest/1/<token>"
    )


class InitResponse(BaseModel):
    """Result of an init call."""
    status: bool
    status_msg: str
    message: str


@router.post("/init", response_model=InitResponse, dependencies=[Depends(init_rate_limit)])
async def init_webhook(request: Request, body: Optional[InitRequest] = None):
    """Encrypt and persist the webhook link."""
    try:
        await initialize_link(request.app.state.link_store, body.bx_link if body else None)
    except ValidationError as e:
        return JSONResponse(
            status_code=e.status_code,
            content=InitResponse(status=False, status_msg="error", message=e.message).model_dump(),
        )
    except Exception as e:
        log_message("error", request.url.path, e)
        return JSONResponse(
            status_code=500,
            content=InitResponse(status=False, status_msg="error", message="Server error").model_dump(),
        )

    logger.info("Bitrix webhook link initialized")
    return InitResponse(
        status=True,
        status_msg="success",
        message="The system is ready to work with your Bitrix24!",
    )
