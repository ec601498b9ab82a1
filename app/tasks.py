"""
Celery tasks for webhook compensation and reconciliation

Tasks:
- replay_webhook_event: Re-run a failed/stuck delivery through the ingestion pipeline
- mirror_sale_for_deal: Create the missing Sale for a Deal after a partial write failure
- flag_stuck_webhook_logs: Flag deliveries stuck in "processing" for manual review
"""
import json
import logging

from app.celery_app import celery_app
from app.config import settings
from app.database import SessionLocal

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.replay_webhook_event", bind=True, max_retries=0)
def replay_webhook_event(self, log_id: int):
    """
    Replay a stored webhook delivery for the tenant recorded on its log entry.
    The dedup gate turns an already-applied event into a duplicate no-op.
    """
    from app.models.webhook_log import WebhookLogEntry
    from app.services.credentials import ResolvedTenant, get_credential
    from app.models.platform_credential import Platform
    from app.services.ingestion import process_delivery

    db = SessionLocal()
    try:
        entry = db.query(WebhookLogEntry).filter(WebhookLogEntry.id == log_id).first()
        if not entry:
            return {"error": f"Webhook log {log_id} not found"}
        if entry.tenant_id is None:
            return {"status": "skipped", "reason": "Delivery was never attributed to a tenant"}

        credential = get_credential(db, entry.tenant_id, Platform(entry.platform))
        tenant = ResolvedTenant(
            tenant_id=entry.tenant_id,
            credential_id=credential.id if credential else None,
            owner_user_id=credential.owner_user_id if credential else None,
        )
        raw_body = json.dumps(entry.payload).encode("utf-8")

        result = process_delivery(
            db,
            platform=entry.platform,
            raw_body=raw_body,
            tenant=tenant,
            replay_of_id=entry.id,
        )
        logger.info(
            "Replayed webhook log %s: status=%s outcome=%s new_log=%s",
            log_id, result.status_code, result.outcome, result.log_id,
        )
        return {
            "status_code": result.status_code,
            "outcome": result.outcome.value if result.outcome else None,
            "log_id": result.log_id,
        }

    finally:
        db.close()


@celery_app.task(name="app.tasks.mirror_sale_for_deal", bind=True, max_retries=3)
def mirror_sale_for_deal(self, deal_id: int, log_id: int):
    """
    Compensate a PartialWriteFailure: rebuild the PurchaseEvent from the logged payload
    and create the Sale mirror if it is still missing. Clears needs_review on success.
    """
    from app.models.deal import Deal
    from app.models.webhook_log import WebhookLogEntry
    from app.services.normalizer import decode_body, normalize
    from app.services.reconciler import mirror_sale

    db = SessionLocal()
    try:
        deal = db.query(Deal).filter(Deal.id == deal_id).first()
        entry = db.query(WebhookLogEntry).filter(WebhookLogEntry.id == log_id).first()
        if not deal or not entry:
            return {"error": f"Deal {deal_id} or webhook log {log_id} not found"}

        event = normalize(entry.platform, decode_body(json.dumps(entry.payload).encode("utf-8")))
        sale = mirror_sale(db, deal, event)

        entry.needs_review = False
        db.commit()
        return {"status": "success", "sale_id": sale.id}

    except Exception as e:
        db.rollback()
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=60)
        logger.error("ADMIN ALERT: sale mirror for deal %s still failing: %s", deal_id, e)
        return {"error": str(e)}

    finally:
        db.close()


@celery_app.task(name="app.tasks.flag_stuck_webhook_logs", bind=True, max_retries=0)
def flag_stuck_webhook_logs(self):
    """
    Flag entries stuck in "processing" (crash between log insert and final update).
    A stuck entry is not proof the event was unhandled: the Deal may exist. It only
    marks the delivery for review/replay; status is left untouched.
    """
    from app.services.webhook_log import find_stuck_entries

    db = SessionLocal()
    try:
        stuck = find_stuck_entries(db, settings.webhook_stuck_after_minutes)
        for entry in stuck:
            entry.needs_review = True
            logger.error(
                "ADMIN ALERT: webhook log %s (%s %s, tenant %s) stuck in processing",
                entry.id, entry.platform, entry.external_id, entry.tenant_id,
            )
        db.commit()
        return {"flagged": len(stuck)}

    finally:
        db.close()
