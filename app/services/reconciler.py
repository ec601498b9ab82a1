"""
Deal/Sale reconciler.

Approval: insert the Deal (closed_won, probability 100) and commit it, then insert the
mirrored Sale in a separate commit. The Deal is the authoritative CRM record; a Sale
failure never rolls it back and is reported as sale_error for compensation.

Reversal: move the existing Deal to closed_lost with a platform-specific loss reason.
Sales are an immutable ledger and are never touched by reversals.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.integrations.base import PurchaseEvent, PurchaseStatus
from app.models.deal import Deal, DealStage, DealSource
from app.models.sale import Sale, SaleStatus
from app.models.user import User, UserRole
from app.services.dedup import find_deal
from app.services.normalizer import get_platform, payment_label

logger = logging.getLogger(__name__)

# deals.title is String(500)
TITLE_MAX_LENGTH = 500

LOSS_REASONS = {
    PurchaseStatus.REFUNDED: "Reembolso solicitado",
    PurchaseStatus.CHARGEBACK: "Chargeback",
    PurchaseStatus.CANCELED: "Compra cancelada",
}


@dataclass
class ApprovalResult:
    deal_id: Optional[int]
    sale_id: Optional[int] = None
    duplicate: bool = False
    sale_error: Optional[str] = None


@dataclass
class ReversalResult:
    deal_id: Optional[int]
    applied: bool


def _display_name(platform: str) -> str:
    mapper = get_platform(platform)
    return mapper.DISPLAY_NAME if mapper else platform.capitalize()


def loss_reason_for(event: PurchaseEvent) -> str:
    reason = LOSS_REASONS.get(event.status, "Compra revertida")
    return f"{reason} ({_display_name(event.platform)})"


def resolve_owner(db: Session, tenant_id: int, owner_user_id: Optional[int]) -> Optional[int]:
    """Credential owner, else the tenant's first admin, else its first user."""
    if owner_user_id:
        return owner_user_id

    admin = db.query(User).filter(
        User.tenant_id == tenant_id,
        User.role == UserRole.ADMIN,
    ).order_by(User.id).first()
    if admin:
        return admin.id

    member = db.query(User).filter(User.tenant_id == tenant_id).order_by(User.id).first()
    return member.id if member else None


def build_sale(deal: Deal, event: PurchaseEvent) -> Sale:
    display = _display_name(event.platform)
    sale_date = event.occurred_at.date() if event.occurred_at else date.today()
    return Sale(
        tenant_id=deal.tenant_id,
        user_id=deal.user_id,
        deal_id=deal.id,
        customer_name=event.buyer_name,
        product_name=event.product_name,
        value=event.amount,
        platform=display,
        payment_method=payment_label(event.payment_method),
        status=SaleStatus.APROVADO,
        observation=(
            f"Sincronizado via webhook {display} (deal {deal.id})\n"
            f"Transação: {event.transaction_id}"
        ),
        sale_date=sale_date,
    )


def apply_approval(
    db: Session,
    tenant_id: int,
    event: PurchaseEvent,
    owner_user_id: Optional[int] = None,
) -> ApprovalResult:
    """
    Create the closed_won Deal and its Sale mirror.

    A concurrent delivery that inserted the same transaction first makes the Deal
    insert hit the unique constraint; that is reported as duplicate with the winner's id.
    """
    display = _display_name(event.platform)
    deal = Deal(
        tenant_id=tenant_id,
        user_id=resolve_owner(db, tenant_id, owner_user_id),
        title=f"{event.product_name} - {event.buyer_name}"[:TITLE_MAX_LENGTH],
        customer_name=event.buyer_name,
        customer_email=event.buyer_email,
        customer_phone=event.buyer_phone,
        value=event.amount,
        stage=DealStage.CLOSED_WON,
        probability=100,
        source=DealSource(event.platform),
        external_id=event.transaction_id,
        notes=(
            f"Venda via {display}\n"
            f"Transação: {event.transaction_id}\n"
            f"Produto: {event.product_name}\n"
            f"Pagamento: {event.payment_method or 'Desconhecido'}"
        ),
    )
    db.add(deal)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = find_deal(db, tenant_id, event.platform, event.transaction_id)
        if existing is None:
            raise
        logger.info(
            "Concurrent delivery already created deal %s for %s/%s",
            existing.id, event.platform, event.transaction_id,
        )
        return ApprovalResult(deal_id=existing.id, duplicate=True)

    db.refresh(deal)
    deal_id = deal.id
    logger.info("Created deal %s for %s transaction %s", deal_id, event.platform, event.transaction_id)

    try:
        sale = build_sale(deal, event)
        db.add(sale)
        db.commit()
        db.refresh(sale)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "ADMIN ALERT: sale mirror failed for deal %s (%s transaction %s). Error: %s",
            deal_id, event.platform, event.transaction_id, e,
        )
        return ApprovalResult(deal_id=deal_id, sale_error=str(e))

    logger.info("Created sale %s for deal %s", sale.id, deal_id)
    return ApprovalResult(deal_id=deal_id, sale_id=sale.id)


def apply_reversal(db: Session, tenant_id: int, event: PurchaseEvent, reason: str) -> ReversalResult:
    """Move the approved Deal for this transaction to closed_lost. No-op if none is closed_won."""
    deal = db.query(Deal).filter(
        Deal.tenant_id == tenant_id,
        Deal.source == DealSource(event.platform),
        Deal.external_id == event.transaction_id,
    ).with_for_update().first()

    if deal is None:
        db.rollback()
        return ReversalResult(deal_id=None, applied=False)
    if deal.stage != DealStage.CLOSED_WON:
        deal_id = deal.id
        db.rollback()
        return ReversalResult(deal_id=deal_id, applied=False)

    display = _display_name(event.platform)
    note = f"Status atualizado via webhook {display}\nEvento: {event.event_type}"
    deal.stage = DealStage.CLOSED_LOST
    deal.probability = 0
    deal.loss_reason = reason
    deal.notes = f"{deal.notes}\n\n{note}" if deal.notes else note
    deal_id = deal.id
    db.commit()

    logger.info("Deal %s moved to closed_lost: %s", deal_id, reason)
    return ReversalResult(deal_id=deal_id, applied=True)


def mirror_sale(db: Session, deal: Deal, event: PurchaseEvent) -> Sale:
    """Create the Sale for a Deal if it does not exist yet. Used by compensation."""
    existing = db.query(Sale).filter(Sale.deal_id == deal.id).first()
    if existing:
        return existing
    sale = build_sale(deal, event)
    db.add(sale)
    db.commit()
    db.refresh(sale)
    logger.info("Mirrored sale %s for deal %s", sale.id, deal.id)
    return sale
