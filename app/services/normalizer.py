"""
Maps platform-native webhook payloads into the canonical PurchaseEvent.

One mapper module per platform (app/integrations/<platform>.py). The endpoint never
sees a raw exception from here: any shape problem surfaces as ParseError.
"""
import json
import logging
from decimal import Decimal
from types import ModuleType
from typing import Any, Dict, Optional

from app.config import settings
from app.integrations import hotmart, kiwify
from app.integrations.base import ParseError, PurchaseEvent

logger = logging.getLogger(__name__)

PLATFORMS: Dict[str, ModuleType] = {
    hotmart.PLATFORM: hotmart,
    kiwify.PLATFORM: kiwify,
}

# Display labels used on Sale.payment_method
_PAYMENT_LABELS: Dict[str, str] = {
    "CREDIT_CARD": "Cartão de Crédito",
    "credit_card": "Cartão de Crédito",
    "PIX": "PIX",
    "pix": "PIX",
    "BILLET": "Boleto",
    "boleto": "Boleto",
    "MULTIPLE_PAYMENTS": "Múltiplos Cartões",
    "RECURRENCE": "Recorrência",
}


def get_platform(platform: str) -> Optional[ModuleType]:
    return PLATFORMS.get(platform)


def decode_body(raw_body: bytes) -> Any:
    """
    Decode a JSON request body keeping every non-integer number as Decimal.

    Raises ParseError on invalid or too deeply nested JSON.
    """
    try:
        return json.loads(raw_body, parse_float=Decimal)
    except (ValueError, UnicodeDecodeError) as e:
        raise ParseError(f"Body is not valid JSON: {e}")
    except RecursionError:
        raise ParseError("Body is nested too deeply")


def normalize(platform: str, payload: Any) -> PurchaseEvent:
    """Map a decoded payload to a PurchaseEvent. Raises ParseError."""
    mapper = get_platform(platform)
    if mapper is None:
        raise ParseError(f"Unsupported platform: {platform}")

    try:
        event = mapper.parse_payload(payload)
    except ParseError:
        raise
    except Exception as e:
        # Mappers only read dicts; anything else here means an unexpected shape
        logger.warning("Unexpected error parsing %s payload: %s", platform, e)
        raise ParseError(f"Malformed {platform} payload: {e}")

    if not event.currency:
        event.currency = settings.default_currency
    return event


def payment_label(payment_method: Optional[str]) -> str:
    if not payment_method:
        return "Desconhecido"
    # sales.payment_method is String(50)
    return _PAYMENT_LABELS.get(payment_method, payment_method)[:50]
