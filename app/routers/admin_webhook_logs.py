"""
Webhook log viewer and manual replay, scoped to the admin's tenant.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.webhook_log import WebhookLogEntry, WebhookLogStatus, WebhookOutcome
from app.models.user import User
from app.schemas.webhook_logs import WebhookLogListResponse, ReplayResponse
from app.auth.dependencies import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/webhook-logs", tags=["Admin Webhook Logs"])

REPLAYABLE_STATUSES = (WebhookLogStatus.ERROR, WebhookLogStatus.PROCESSING)


@router.get("", response_model=WebhookLogListResponse)
def list_webhook_logs(
    status: Optional[str] = Query(None, description="Filter by status: received, processing, success, error"),
    outcome: Optional[str] = Query(None, description="Filter by outcome, e.g. orphan_reversal"),
    platform: Optional[str] = Query(None, description="Filter by platform"),
    external_id: Optional[str] = Query(None, description="Filter by platform transaction id"),
    needs_review: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """List the tenant's webhook deliveries, most recent first."""
    query = db.query(WebhookLogEntry).filter(WebhookLogEntry.tenant_id == current_user.tenant_id)

    if status:
        try:
            query = query.filter(WebhookLogEntry.status == WebhookLogStatus(status))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")

    if outcome:
        try:
            query = query.filter(WebhookLogEntry.outcome == WebhookOutcome(outcome))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid outcome: {outcome}")

    if platform:
        query = query.filter(WebhookLogEntry.platform == platform)

    if external_id:
        query = query.filter(WebhookLogEntry.external_id == external_id)

    if needs_review is not None:
        query = query.filter(WebhookLogEntry.needs_review.is_(needs_review))

    total = query.count()
    items = query.order_by(WebhookLogEntry.created_at.desc()).offset(offset).limit(limit).all()

    return WebhookLogListResponse(items=items, total=total)


@router.post("/{log_id}/replay", response_model=ReplayResponse)
def replay_webhook_log(
    log_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """
    Re-run a failed or stuck delivery through the pipeline.
    The replay writes its own log entry (replay_of_id → this one); the dedup gate
    makes replaying an already-applied event a no-op.
    """
    entry = db.query(WebhookLogEntry).filter(
        WebhookLogEntry.id == log_id,
        WebhookLogEntry.tenant_id == current_user.tenant_id,
    ).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Webhook log not found")

    if entry.status not in REPLAYABLE_STATUSES:
        raise HTTPException(status_code=400, detail="Only failed or stuck deliveries can be replayed")

    from app.tasks import replay_webhook_event
    task = replay_webhook_event.delay(entry.id)
    logger.info("User %s enqueued replay of webhook log %s", current_user.id, entry.id)
    return ReplayResponse(task_id=task.id, message="Replay enqueued")
