"""
Append-only webhook event log.

Every delivery gets exactly one entry. An entry is written first (as "processing" once
the tenant is known and the payload parsed, or directly as a final error), then
transitioned once to "success"/"error" with its outcome and linked deal. Nothing else
on an entry changes.
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.webhook_log import WebhookLogEntry, WebhookLogStatus, WebhookOutcome
from app.integrations.base import REVERSAL_STATUSES

logger = logging.getLogger(__name__)

_REVERSAL_VALUES = [s.value for s in REVERSAL_STATUSES]

# webhook_logs column sizes
PLATFORM_MAX_LENGTH = 50
EVENT_TYPE_MAX_LENGTH = 100
EXTERNAL_ID_MAX_LENGTH = 255


def loggable_payload(raw_body: bytes) -> Dict[str, Any]:
    """JSON-safe copy of the body for the log; undecodable bodies are kept as text."""
    try:
        decoded = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError, RecursionError):
        return {"raw": raw_body.decode("utf-8", errors="replace")}
    if isinstance(decoded, dict):
        return decoded
    return {"raw": decoded}


def record_entry(
    db: Session,
    platform: str,
    payload: Dict[str, Any],
    status: WebhookLogStatus,
    event_type: str = "unknown",
    tenant_id: Optional[int] = None,
    external_id: Optional[str] = None,
    event_status: Optional[str] = None,
    outcome: Optional[WebhookOutcome] = None,
    error_message: Optional[str] = None,
    replay_of_id: Optional[int] = None,
) -> WebhookLogEntry:
    entry = WebhookLogEntry(
        tenant_id=tenant_id,
        platform=platform[:PLATFORM_MAX_LENGTH],
        event_type=event_type[:EVENT_TYPE_MAX_LENGTH],
        external_id=external_id[:EXTERNAL_ID_MAX_LENGTH] if external_id else external_id,
        event_status=event_status,
        payload=payload,
        status=status,
        outcome=outcome,
        error_message=error_message,
        needs_review=False,
        replay_of_id=replay_of_id,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def finish_entry(
    db: Session,
    entry: WebhookLogEntry,
    status: WebhookLogStatus,
    outcome: WebhookOutcome,
    deal_id: Optional[int] = None,
    error_message: Optional[str] = None,
    needs_review: bool = False,
) -> WebhookLogEntry:
    entry.status = status
    entry.outcome = outcome
    entry.error_message = error_message
    entry.needs_review = needs_review
    if deal_id is not None:
        entry.deal_id = deal_id
    db.commit()
    return entry


def has_prior_reversal(
    db: Session,
    tenant_id: int,
    platform: str,
    external_id: str,
    exclude_id: Optional[int] = None,
) -> bool:
    """True if a reversal for this transaction was already delivered, applied or not."""
    query = db.query(WebhookLogEntry).filter(
        WebhookLogEntry.tenant_id == tenant_id,
        WebhookLogEntry.platform == platform,
        WebhookLogEntry.external_id == external_id,
        WebhookLogEntry.event_status.in_(_REVERSAL_VALUES),
    )
    if exclude_id is not None:
        query = query.filter(WebhookLogEntry.id != exclude_id)
    return query.first() is not None


def find_stuck_entries(db: Session, older_than_minutes: int) -> List[WebhookLogEntry]:
    """Entries still "processing" after the cutoff and not yet flagged."""
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=older_than_minutes)
    return db.query(WebhookLogEntry).filter(
        WebhookLogEntry.status == WebhookLogStatus.PROCESSING,
        WebhookLogEntry.needs_review.is_(False),
        WebhookLogEntry.created_at < cutoff,
    ).all()
