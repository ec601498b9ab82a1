"""
Canonical purchase event shared by all sales-platform mappers.

Each platform module exposes the same surface:
    PLATFORM, SECRET_HEADER, DISPLAY_NAME,
    is_supported_event(event_type) -> bool
    event_type_of(payload) -> Optional[str]
    transaction_id_of(payload) -> Optional[str]
    parse_payload(payload) -> PurchaseEvent   (raises ParseError)
"""
import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


class PurchaseStatus(str, enum.Enum):
    APPROVED = "approved"
    CANCELED = "canceled"
    REFUNDED = "refunded"
    CHARGEBACK = "chargeback"
    PENDING = "pending"


REVERSAL_STATUSES = frozenset({PurchaseStatus.CANCELED, PurchaseStatus.REFUNDED, PurchaseStatus.CHARGEBACK})

CENTS = Decimal("0.01")

# Column limits of deals/sales: Numeric(12, 2) and String(255)
MAX_AMOUNT = Decimal("10000000000")
MAX_TEXT = 255
MAX_PHONE = 50


class ParseError(ValueError):
    """Payload does not have the shape the platform mapper expects"""


@dataclass
class PurchaseEvent:
    platform: str
    event_type: str
    transaction_id: str
    status: PurchaseStatus
    buyer_name: str
    buyer_email: str
    buyer_phone: Optional[str]
    product_id: Optional[str]
    product_name: str
    amount: Decimal
    currency: str
    payment_method: Optional[str]
    occurred_at: Optional[datetime]


def require_dict(value: Any, path: str) -> dict:
    if not isinstance(value, dict):
        raise ParseError(f"'{path}' must be an object")
    return value


def require_str(value: Any, path: str, max_length: int = MAX_TEXT) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ParseError(f"Missing required field '{path}'")
    if isinstance(value, (dict, list, bool)):
        raise ParseError(f"'{path}' must be a string")
    text = str(value).strip()
    if len(text) > max_length:
        raise ParseError(f"'{path}' is longer than {max_length} characters")
    return text


def optional_str(value: Any, max_length: Optional[int] = None) -> Optional[str]:
    """Free-text field; cut to max_length when given"""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    if max_length is not None:
        text = text[:max_length].rstrip()
    return text or None


def parse_amount(value: Any, path: str, limit: Decimal = MAX_AMOUNT) -> Decimal:
    """
    Parse a currency amount into an exact Decimal with two places.

    Callers decode request bodies with parse_float=Decimal, so JSON numbers arrive
    here as Decimal or int. A float is converted through its repr, never through
    binary arithmetic.
    Amounts at or above limit do not fit the money columns and are rejected.
    """
    if value is None or isinstance(value, bool):
        raise ParseError(f"Missing required field '{path}'")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError, ValueError):
        raise ParseError(f"'{path}' is not a valid amount: {value!r}")
    if not amount.is_finite() or amount < 0:
        raise ParseError(f"'{path}' is not a valid amount: {value!r}")
    # Checked before quantize, which fails past the context precision
    if amount >= limit or amount.quantize(CENTS) >= limit:
        raise ParseError(f"'{path}' is out of range: {value!r}")
    return amount.quantize(CENTS)


def parse_epoch_ms(value: Any) -> Optional[datetime]:
    """Hotmart timestamps are epoch milliseconds"""
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None
