"""
Kiwify webhook parsing.

Kiwify posts the order object itself (no envelope). Amounts come in cents under
Commissions. The tenant token travels in the webhook URL (?token=...) or in the
X-Kiwify-Token header.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict

from app.integrations.base import (
    MAX_AMOUNT,
    MAX_PHONE,
    MAX_TEXT,
    ParseError,
    PurchaseEvent,
    PurchaseStatus,
    optional_str,
    parse_amount,
    require_dict,
    require_str,
)

PLATFORM = "kiwify"
DISPLAY_NAME = "Kiwify"
SECRET_HEADER = "X-Kiwify-Token"
SECRET_QUERY_PARAM = "token"

_STATUS_MAP: Dict[str, PurchaseStatus] = {
    "paid": PurchaseStatus.APPROVED,
    "approved": PurchaseStatus.APPROVED,
    "refunded": PurchaseStatus.REFUNDED,
    "chargedback": PurchaseStatus.CHARGEBACK,
    "canceled": PurchaseStatus.CANCELED,
    "waiting_payment": PurchaseStatus.PENDING,
    "refused": PurchaseStatus.PENDING,
    "pending": PurchaseStatus.PENDING,
}

SUPPORTED_EVENTS = frozenset(_STATUS_MAP)

_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%dT%H:%M:%SZ")


def is_supported_event(event_type: str) -> bool:
    return event_type in SUPPORTED_EVENTS


def event_type_of(payload) -> Optional[str]:
    if isinstance(payload, dict) and isinstance(payload.get("order_status"), str):
        return payload["order_status"]
    return None


def transaction_id_of(payload) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    return optional_str(payload.get("order_id"))


def _parse_date(value) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def parse_payload(payload) -> PurchaseEvent:
    """Parse a Kiwify order webhook into a PurchaseEvent. Raises ParseError."""
    payload = require_dict(payload, "payload")
    event_type = require_str(payload.get("order_status"), "order_status")
    status = _STATUS_MAP.get(event_type)
    if status is None:
        raise ParseError(f"Unsupported Kiwify order status: {event_type}")

    customer = require_dict(payload.get("Customer"), "Customer")
    product = require_dict(payload.get("Product"), "Product")
    commissions = require_dict(payload.get("Commissions"), "Commissions")

    cents = commissions.get("charge_amount")
    if cents is None:
        cents = commissions.get("product_base_price")
    amount = parse_amount(cents, "Commissions.charge_amount", limit=MAX_AMOUNT * 100) / Decimal(100)

    buyer_email = require_str(customer.get("email"), "Customer.email").lower()

    return PurchaseEvent(
        platform=PLATFORM,
        event_type=event_type,
        transaction_id=require_str(payload.get("order_id"), "order_id"),
        status=status,
        buyer_name=optional_str(customer.get("full_name"), MAX_TEXT) or buyer_email,
        buyer_email=buyer_email,
        buyer_phone=optional_str(customer.get("mobile"), MAX_PHONE),
        product_id=optional_str(product.get("product_id")),
        product_name=require_str(product.get("product_name"), "Product.product_name"),
        amount=parse_amount(amount, "Commissions.charge_amount"),
        currency=optional_str(commissions.get("currency")) or "",
        payment_method=optional_str(payload.get("payment_method"), MAX_TEXT),
        occurred_at=_parse_date(payload.get("approved_date")) or _parse_date(payload.get("created_at")),
    )
