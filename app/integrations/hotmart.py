"""
Hotmart webhook parsing.

Webhook auth: shared-secret via X-Hotmart-Hottok header, one secret per tenant.
"""
from typing import Optional, Dict

from app.integrations.base import (
    MAX_PHONE,
    MAX_TEXT,
    ParseError,
    PurchaseEvent,
    PurchaseStatus,
    optional_str,
    parse_amount,
    parse_epoch_ms,
    require_dict,
    require_str,
)

PLATFORM = "hotmart"
DISPLAY_NAME = "Hotmart"
SECRET_HEADER = "X-Hotmart-Hottok"

# Supported Hotmart event types
PURCHASE_APPROVED = "PURCHASE_APPROVED"
PURCHASE_COMPLETE = "PURCHASE_COMPLETE"
PURCHASE_CANCELED = "PURCHASE_CANCELED"
PURCHASE_REFUNDED = "PURCHASE_REFUNDED"
PURCHASE_CHARGEBACK = "PURCHASE_CHARGEBACK"
PURCHASE_DELAYED = "PURCHASE_DELAYED"
PURCHASE_BILLET_PRINTED = "PURCHASE_BILLET_PRINTED"
PURCHASE_PROTEST = "PURCHASE_PROTEST"

# Hotmart event → canonical status
_STATUS_MAP: Dict[str, PurchaseStatus] = {
    PURCHASE_APPROVED: PurchaseStatus.APPROVED,
    PURCHASE_COMPLETE: PurchaseStatus.APPROVED,
    PURCHASE_CANCELED: PurchaseStatus.CANCELED,
    PURCHASE_REFUNDED: PurchaseStatus.REFUNDED,
    PURCHASE_CHARGEBACK: PurchaseStatus.CHARGEBACK,
    PURCHASE_DELAYED: PurchaseStatus.PENDING,
    PURCHASE_BILLET_PRINTED: PurchaseStatus.PENDING,
    PURCHASE_PROTEST: PurchaseStatus.PENDING,
}

SUPPORTED_EVENTS = frozenset(_STATUS_MAP)


def is_supported_event(event_type: str) -> bool:
    return event_type in SUPPORTED_EVENTS


def event_type_of(payload) -> Optional[str]:
    if isinstance(payload, dict) and isinstance(payload.get("event"), str):
        return payload["event"]
    return None


def transaction_id_of(payload) -> Optional[str]:
    """Best-effort transaction id for logging, without validating the payload"""
    try:
        return optional_str(payload["data"]["purchase"]["transaction"])
    except (KeyError, TypeError):
        return None


def parse_payload(payload) -> PurchaseEvent:
    """
    Parse a Hotmart webhook payload into a PurchaseEvent.

    Hotmart sends the same envelope for every purchase event:
    {"event", "creation_date", "data": {"buyer", "product", "purchase"}}.
    Raises ParseError when a required field is missing or has the wrong shape.
    """
    payload = require_dict(payload, "payload")
    event_type = require_str(payload.get("event"), "event")
    status = _STATUS_MAP.get(event_type)
    if status is None:
        raise ParseError(f"Unsupported Hotmart event: {event_type}")

    data = require_dict(payload.get("data"), "data")
    buyer = require_dict(data.get("buyer", {}), "data.buyer")
    product = require_dict(data.get("product", {}), "data.product")
    purchase = require_dict(data.get("purchase"), "data.purchase")
    price = require_dict(purchase.get("price"), "data.purchase.price")
    payment = purchase.get("payment") or {}
    if not isinstance(payment, dict):
        payment = {}

    transaction_id = require_str(purchase.get("transaction"), "data.purchase.transaction")
    buyer_email = require_str(buyer.get("email"), "data.buyer.email").lower()

    occurred_at = (
        parse_epoch_ms(purchase.get("approved_date"))
        or parse_epoch_ms(purchase.get("order_date"))
        or parse_epoch_ms(payload.get("creation_date"))
    )

    return PurchaseEvent(
        platform=PLATFORM,
        event_type=event_type,
        transaction_id=transaction_id,
        status=status,
        buyer_name=optional_str(buyer.get("name"), MAX_TEXT) or buyer_email,
        buyer_email=buyer_email,
        buyer_phone=optional_str(buyer.get("checkout_phone"), MAX_PHONE) or optional_str(buyer.get("phone"), MAX_PHONE),
        product_id=optional_str(product.get("id")),
        product_name=require_str(product.get("name"), "data.product.name"),
        amount=parse_amount(price.get("value"), "data.purchase.price.value"),
        currency=optional_str(price.get("currency_value")) or optional_str(price.get("currency_code")) or "",
        payment_method=optional_str(payment.get("type"), MAX_TEXT),
        occurred_at=occurred_at,
    )
