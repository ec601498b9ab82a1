"""Tests for Kiwify payload mapping (app/integrations/kiwify.py)"""
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from app.integrations.base import ParseError, PurchaseStatus
from app.integrations.kiwify import parse_payload, is_supported_event, event_type_of, transaction_id_of
from payloads import kiwify_payload


def test_paid_order_maps_all_fields():
    event = parse_payload(kiwify_payload())

    assert event.platform == "kiwify"
    assert event.event_type == "paid"
    assert event.status == PurchaseStatus.APPROVED
    assert event.transaction_id == "KW-0001"
    assert event.buyer_name == "Maria Kiwi"
    assert event.buyer_email == "maria@example.com"
    assert event.buyer_phone == "+5521988887777"
    assert event.product_id == "prod-kw-1"
    assert event.product_name == "Pacote de Assets"
    assert event.amount == Decimal("197.00")
    assert event.currency == "BRL"
    assert event.payment_method == "pix"
    assert event.occurred_at == datetime(2026, 10, 18, 14, 31, tzinfo=timezone.utc)


def test_amount_in_cents_keeps_exact_value():
    assert parse_payload(kiwify_payload(charge_amount=1990)).amount == Decimal("19.90")


def test_falls_back_to_product_base_price():
    payload = kiwify_payload()
    payload["Commissions"] = {"product_base_price": 4990}
    assert parse_payload(payload).amount == Decimal("49.90")


@pytest.mark.parametrize("order_status,status", [
    ("approved", PurchaseStatus.APPROVED),
    ("refunded", PurchaseStatus.REFUNDED),
    ("chargedback", PurchaseStatus.CHARGEBACK),
    ("canceled", PurchaseStatus.CANCELED),
    ("waiting_payment", PurchaseStatus.PENDING),
    ("refused", PurchaseStatus.PENDING),
])
def test_order_status_mapping(order_status, status):
    assert parse_payload(kiwify_payload(order_status=order_status)).status == status


def test_created_at_used_when_not_approved():
    payload = kiwify_payload(order_status="waiting_payment")
    del payload["approved_date"]
    assert parse_payload(payload).occurred_at == datetime(2026, 10, 18, 14, 30, tzinfo=timezone.utc)


def test_missing_customer_email_raises():
    payload = kiwify_payload()
    del payload["Customer"]["email"]
    with pytest.raises(ParseError):
        parse_payload(payload)


def test_missing_commissions_raises():
    payload = kiwify_payload()
    del payload["Commissions"]
    with pytest.raises(ParseError):
        parse_payload(payload)


def test_missing_order_id_raises():
    payload = kiwify_payload()
    del payload["order_id"]
    with pytest.raises(ParseError):
        parse_payload(payload)


def test_event_helpers():
    assert is_supported_event("paid") is True
    assert is_supported_event("subscription_renewed") is False
    assert event_type_of(kiwify_payload(order_status="refunded")) == "refunded"
    assert event_type_of({}) is None
    assert transaction_id_of(kiwify_payload(order_id="KW-9")) == "KW-9"
    assert transaction_id_of([]) is None


def test_largest_fitting_amount_in_cents():
    assert parse_payload(kiwify_payload(charge_amount=999999999999)).amount == Decimal("9999999999.99")


def test_amount_in_cents_too_large_raises():
    with pytest.raises(ParseError) as exc:
        parse_payload(kiwify_payload(charge_amount=10 ** 12))
    assert "Commissions.charge_amount" in str(exc.value)


def test_overlong_order_id_raises():
    with pytest.raises(ParseError):
        parse_payload(kiwify_payload(order_id="KW-" + "1" * 300))
