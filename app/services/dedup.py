"""
Idempotency & dedup gate.

Decides what a canonical event should do given what is already persisted for its
idempotency key (tenant_id, platform, transaction id). Platforms retry and reorder
deliveries, so the rules are:

    approved + no deal                  → create
    approved + deal closed_won          → skip (duplicate)
    approved + deal closed_lost         → skip (already reversed; reversals are terminal)
    approved + reversal already logged  → skip (already reversed, even with no deal)
    reversal + deal closed_won          → reverse
    reversal + deal closed_lost         → skip (already reversed)
    reversal + no deal                  → skip (no matching deal)
    pending                             → skip (ignored status)

The lookup-then-act sequence is not atomic; the unique constraint on
deals(tenant_id, source, external_id) is the backstop (see reconciler).
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.integrations.base import PurchaseStatus
from app.models.deal import Deal, DealStage, DealSource
from app.services.webhook_log import has_prior_reversal

logger = logging.getLogger(__name__)

SKIP_DUPLICATE = "duplicate"
SKIP_ALREADY_REVERSED = "already_reversed"
SKIP_NO_MATCHING_DEAL = "no_matching_deal"
SKIP_IGNORED_STATUS = "ignored_status"


class Action(str, enum.Enum):
    CREATE = "create"
    REVERSE = "reverse"
    SKIP = "skip"


@dataclass
class Decision:
    action: Action
    reason: Optional[str] = None
    deal_id: Optional[int] = None


def find_deal(db: Session, tenant_id: int, platform: str, external_id: str) -> Optional[Deal]:
    """Deal for an idempotency key; always scoped by tenant, never by external_id alone."""
    return db.query(Deal).filter(
        Deal.tenant_id == tenant_id,
        Deal.source == DealSource(platform),
        Deal.external_id == external_id,
    ).first()


def should_process(
    db: Session,
    tenant_id: int,
    platform: str,
    external_id: str,
    status: PurchaseStatus,
    log_entry_id: Optional[int] = None,
) -> Decision:
    if status == PurchaseStatus.PENDING:
        return Decision(Action.SKIP, SKIP_IGNORED_STATUS)

    deal = find_deal(db, tenant_id, platform, external_id)

    if status == PurchaseStatus.APPROVED:
        if deal is None:
            if has_prior_reversal(db, tenant_id, platform, external_id, exclude_id=log_entry_id):
                logger.info(
                    "Approval for %s/%s arrived after a reversal; skipping",
                    platform, external_id,
                )
                return Decision(Action.SKIP, SKIP_ALREADY_REVERSED)
            return Decision(Action.CREATE)
        if deal.stage == DealStage.CLOSED_LOST:
            return Decision(Action.SKIP, SKIP_ALREADY_REVERSED, deal.id)
        return Decision(Action.SKIP, SKIP_DUPLICATE, deal.id)

    # Reversal: refunded / canceled / chargeback
    if deal is None:
        return Decision(Action.SKIP, SKIP_NO_MATCHING_DEAL)
    if deal.stage == DealStage.CLOSED_LOST:
        return Decision(Action.SKIP, SKIP_ALREADY_REVERSED, deal.id)
    return Decision(Action.REVERSE, deal_id=deal.id)
