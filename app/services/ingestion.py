"""
Webhook ingestion pipeline (composition root).

Received → Authenticated → Normalized → DedupChecked → Reconciled → Logged → Responded,
with an early exit from any state straight to Logged(error) → Responded(error).

Every delivery produces exactly one webhook_logs entry and one response. Nothing raises
out of process_delivery; the router only turns DeliveryResult into a JSONResponse.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.integrations.base import ParseError, PurchaseEvent
from app.models.webhook_log import WebhookLogEntry, WebhookLogStatus, WebhookOutcome
from app.services import dedup, reconciler
from app.services.credentials import ResolvedTenant, resolve_tenant
from app.services.normalizer import decode_body, get_platform, normalize
from app.services.webhook_log import finish_entry, loggable_payload, record_entry

logger = logging.getLogger(__name__)

MSG_UNAUTHORIZED = "Invalid or unknown secret - no matching configuration found"
MSG_NO_MATCHING_DEAL = "no matching deal"


@dataclass
class DeliveryResult:
    status_code: int
    body: Dict[str, Any]
    log_id: Optional[int] = None
    outcome: Optional[WebhookOutcome] = None


def _ack(event_type: str, deal_id: Optional[int], message: str, entry: WebhookLogEntry, outcome: WebhookOutcome) -> DeliveryResult:
    return DeliveryResult(
        status_code=200,
        body={"success": True, "event": event_type, "deal_id": deal_id, "message": message},
        log_id=entry.id,
        outcome=outcome,
    )


def _fail(status_code: int, error: str, entry: Optional[WebhookLogEntry], outcome: WebhookOutcome) -> DeliveryResult:
    return DeliveryResult(
        status_code=status_code,
        body={"error": error},
        log_id=entry.id if entry is not None else None,
        outcome=outcome,
    )


def _enqueue_sale_mirror(deal_id: int, log_id: int) -> None:
    if not settings.sale_mirror_retry_enabled:
        return
    try:
        from app.tasks import mirror_sale_for_deal
        mirror_sale_for_deal.delay(deal_id, log_id)
    except Exception as e:
        logger.error("Failed to enqueue sale mirror for deal %s: %s", deal_id, e)


def process_delivery(
    db: Session,
    platform: str,
    raw_body: bytes,
    presented_secret: Optional[str] = None,
    tenant: Optional[ResolvedTenant] = None,
    replay_of_id: Optional[int] = None,
) -> DeliveryResult:
    """
    Run one webhook delivery through the pipeline.

    `tenant` bypasses secret resolution; only the replay task passes it, using the
    tenant already recorded on the original log entry.
    """
    log_payload: Dict[str, Any] = {}
    entry: Optional[WebhookLogEntry] = None

    try:
        log_payload = loggable_payload(raw_body)
        mapper = get_platform(platform)
        if mapper is None:
            entry = record_entry(
                db, platform, log_payload, WebhookLogStatus.ERROR,
                outcome=WebhookOutcome.UNKNOWN_PLATFORM,
                error_message=f"Unknown platform: {platform}",
                replay_of_id=replay_of_id,
            )
            return _fail(404, f"Unknown platform: {platform}", entry, WebhookOutcome.UNKNOWN_PLATFORM)

        event_type = mapper.event_type_of(log_payload)
        external_id = mapper.transaction_id_of(log_payload)
        logger.info("[%s webhook] Received event: %s, transaction: %s", platform, event_type, external_id)

        # Authenticated
        if tenant is None:
            tenant = resolve_tenant(db, platform, presented_secret)
        if tenant is None:
            logger.warning("[%s webhook] Invalid or unknown secret", platform)
            entry = record_entry(
                db, platform, log_payload, WebhookLogStatus.ERROR,
                event_type=event_type or "unknown",
                external_id=external_id,
                outcome=WebhookOutcome.UNAUTHENTICATED,
                error_message=MSG_UNAUTHORIZED,
                replay_of_id=replay_of_id,
            )
            return _fail(401, "Unauthorized", entry, WebhookOutcome.UNAUTHENTICATED)

        # Normalized
        try:
            payload = decode_body(raw_body)
            if event_type is not None and not mapper.is_supported_event(event_type):
                entry = record_entry(
                    db, platform, log_payload, WebhookLogStatus.SUCCESS,
                    event_type=event_type,
                    tenant_id=tenant.tenant_id,
                    external_id=external_id,
                    outcome=WebhookOutcome.UNSUPPORTED_EVENT,
                    replay_of_id=replay_of_id,
                )
                logger.info("[%s webhook] Unhandled event type: %s", platform, event_type)
                return _ack(event_type, None, "Unsupported event ignored", entry, WebhookOutcome.UNSUPPORTED_EVENT)
            event = normalize(platform, payload)
        except ParseError as e:
            logger.warning("[%s webhook] Malformed payload: %s", platform, e)
            entry = record_entry(
                db, platform, log_payload, WebhookLogStatus.ERROR,
                event_type=event_type or "unknown",
                tenant_id=tenant.tenant_id,
                external_id=external_id,
                outcome=WebhookOutcome.MALFORMED_PAYLOAD,
                error_message=str(e),
                replay_of_id=replay_of_id,
            )
            return _fail(400, str(e), entry, WebhookOutcome.MALFORMED_PAYLOAD)

        entry = record_entry(
            db, platform, log_payload, WebhookLogStatus.PROCESSING,
            event_type=event.event_type,
            tenant_id=tenant.tenant_id,
            external_id=event.transaction_id,
            event_status=event.status.value,
            replay_of_id=replay_of_id,
        )

        # DedupChecked → Reconciled → Logged
        decision = dedup.should_process(
            db, tenant.tenant_id, platform, event.transaction_id, event.status, log_entry_id=entry.id,
        )
        if decision.action == dedup.Action.CREATE:
            return _create(db, tenant, event, entry)
        if decision.action == dedup.Action.REVERSE:
            return _reverse(db, tenant, event, entry)
        return _skip(db, event, entry, decision)

    except Exception as e:
        logger.exception("[%s webhook] Unexpected error: %s", platform, e)
        _log_internal_error(db, platform, log_payload, entry, str(e), replay_of_id)
        return _fail(500, "Internal server error", None, WebhookOutcome.INTERNAL_ERROR)


def _create(db: Session, tenant: ResolvedTenant, event: PurchaseEvent, entry: WebhookLogEntry) -> DeliveryResult:
    result = reconciler.apply_approval(db, tenant.tenant_id, event, tenant.owner_user_id)

    if result.duplicate:
        finish_entry(db, entry, WebhookLogStatus.SUCCESS, WebhookOutcome.DUPLICATE, deal_id=result.deal_id)
        return _ack(event.event_type, result.deal_id, "Duplicate event, already processed", entry, WebhookOutcome.DUPLICATE)

    if result.sale_error:
        finish_entry(
            db, entry, WebhookLogStatus.ERROR, WebhookOutcome.PARTIAL_WRITE_FAILURE,
            deal_id=result.deal_id,
            error_message=f"Deal created but sale mirror failed: {result.sale_error}",
            needs_review=True,
        )
        _enqueue_sale_mirror(result.deal_id, entry.id)
        return _ack(event.event_type, result.deal_id, "Deal created", entry, WebhookOutcome.PARTIAL_WRITE_FAILURE)

    finish_entry(db, entry, WebhookLogStatus.SUCCESS, WebhookOutcome.CREATED, deal_id=result.deal_id)
    return _ack(event.event_type, result.deal_id, "Deal created", entry, WebhookOutcome.CREATED)


def _reverse(db: Session, tenant: ResolvedTenant, event: PurchaseEvent, entry: WebhookLogEntry) -> DeliveryResult:
    result = reconciler.apply_reversal(db, tenant.tenant_id, event, reconciler.loss_reason_for(event))

    if result.applied:
        finish_entry(db, entry, WebhookLogStatus.SUCCESS, WebhookOutcome.REVERSED, deal_id=result.deal_id)
        return _ack(event.event_type, result.deal_id, "Deal marked as lost", entry, WebhookOutcome.REVERSED)

    # Lost a race with a concurrent reversal, or the deal vanished in between
    if result.deal_id is not None:
        return _skip(db, event, entry, dedup.Decision(dedup.Action.SKIP, dedup.SKIP_ALREADY_REVERSED, result.deal_id))
    return _skip(db, event, entry, dedup.Decision(dedup.Action.SKIP, dedup.SKIP_NO_MATCHING_DEAL))


def _skip(db: Session, event: PurchaseEvent, entry: WebhookLogEntry, decision: dedup.Decision) -> DeliveryResult:
    if decision.reason == dedup.SKIP_NO_MATCHING_DEAL:
        logger.warning(
            "[%s webhook] No existing deal found for transaction: %s",
            event.platform, event.transaction_id,
        )
        finish_entry(
            db, entry, WebhookLogStatus.ERROR, WebhookOutcome.ORPHAN_REVERSAL,
            error_message=MSG_NO_MATCHING_DEAL,
            needs_review=True,
        )
        return _ack(event.event_type, None, "No matching deal; flagged for review", entry, WebhookOutcome.ORPHAN_REVERSAL)

    outcomes = {
        dedup.SKIP_DUPLICATE: (WebhookOutcome.DUPLICATE, "Duplicate event, already processed"),
        dedup.SKIP_ALREADY_REVERSED: (WebhookOutcome.ALREADY_REVERSED, "Transaction already reversed"),
        dedup.SKIP_IGNORED_STATUS: (WebhookOutcome.IGNORED_STATUS, f"Status {event.status.value} ignored"),
    }
    outcome, message = outcomes[decision.reason]
    logger.info(
        "[%s webhook] Skipping %s for transaction %s: %s",
        event.platform, event.event_type, event.transaction_id, decision.reason,
    )
    finish_entry(db, entry, WebhookLogStatus.SUCCESS, outcome, deal_id=decision.deal_id)
    return _ack(event.event_type, decision.deal_id, message, entry, outcome)


def _log_internal_error(
    db: Session,
    platform: str,
    log_payload: Dict[str, Any],
    entry: Optional[WebhookLogEntry],
    error: str,
    replay_of_id: Optional[int],
) -> None:
    """Best effort: the database may be the thing that failed."""
    try:
        db.rollback()
        if entry is not None:
            finish_entry(
                db, entry, WebhookLogStatus.ERROR, WebhookOutcome.INTERNAL_ERROR,
                error_message=error, needs_review=True,
            )
        else:
            record_entry(
                db, platform, log_payload, WebhookLogStatus.ERROR,
                outcome=WebhookOutcome.INTERNAL_ERROR,
                error_message=error,
                replay_of_id=replay_of_id,
            )
    except SQLAlchemyError as log_error:
        db.rollback()
        logger.error("ADMIN ALERT: could not log failed %s delivery: %s", platform, log_error)
