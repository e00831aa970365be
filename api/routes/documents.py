"""Warehouse document endpoint.

POST {base}/process_docs builds a Bitrix warehouse document from the product
rows of a deal or smart-process item. Parameters come in the query string:

    elemId, docType                       required
    storeId, storeFrom, storeTo           stores (see core/documents/policy.py)
    ownerType | ownerTypeShort            'D' or 'DYNAMIC_<id>'
    spaTypeId | entityTypeId | smartTypeId
    elemType                              legacy S|D
    conduct (default true), dryRun (default false)
    storeFromField, storeToField, siteId
"""

import uuid
from typing import Any, Dict, Union

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from core.documents.models import DocumentResult, DryRunPreview, ProcessDocsRequest
from core.errors import NotFoundError, ValidationError
from core.observability.logging import log_message, with_correlation


router = APIRouter()


def _error_response(status_code: int, content: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content)


@router.post(
    "/process_docs",
    response_model=Union[DryRunPreview, DocumentResult],
    response_model_by_alias=True,
)
async def process_docs(request: Request):
    """Create (or preview) a warehouse document for a CRM element."""
    params = ProcessDocsRequest.from_params(request.query_params)
    pipeline = request.app.state.pipeline

    with with_correlation(request_id=uuid.uuid4().hex, operation="process_docs"):
        try:
            return await pipeline.process(params)
        except (ValidationError, NotFoundError) as e:
            return _error_response(e.status_code, e.to_dict())
        except Exception as e:
            log_message("error", request.url.path, e)
            return _error_response(500, {"error": str(e) or type(e).__name__})
