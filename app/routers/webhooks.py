"""
Sales-platform webhook receiver.

Synchronous pattern: resolve tenant by shared secret, normalize, dedup, reconcile and
log, then answer. The platform only sees 401/400/500 when a retry could help or the
integration is misconfigured; everything that was handled (including duplicates) is 200.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.webhooks import WebhookResponse, WebhookErrorResponse
from app.services.ingestion import process_delivery
from app.services.normalizer import get_platform

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def extract_secret(platform: str, request: Request) -> Optional[str]:
    """Per-platform secret source: a header, or a query parameter baked into the webhook URL."""
    mapper = get_platform(platform)
    if mapper is None:
        return None
    secret = request.headers.get(mapper.SECRET_HEADER)
    query_param = getattr(mapper, "SECRET_QUERY_PARAM", None)
    if not secret and query_param:
        secret = request.query_params.get(query_param)
    return secret


@router.post(
    "/{platform}",
    response_model=WebhookResponse,
    responses={400: {"model": WebhookErrorResponse}, 401: {"model": WebhookErrorResponse},
               404: {"model": WebhookErrorResponse}, 500: {"model": WebhookErrorResponse}},
)
async def receive_webhook(
    platform: str,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Receive a purchase lifecycle webhook (Hotmart, Kiwify).
    Always answers with a structured JSON body; never raises to the HTTP layer.
    """
    raw_body = await request.body()
    result = process_delivery(
        db,
        platform=platform.lower(),
        raw_body=raw_body,
        presented_secret=extract_secret(platform.lower(), request),
    )
    return JSONResponse(status_code=result.status_code, content=result.body)
