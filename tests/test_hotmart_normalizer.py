"""Tests for Hotmart payload mapping (app/integrations/hotmart.py)"""
import copy
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from app.integrations.base import ParseError, PurchaseStatus
from app.integrations.hotmart import (
    parse_payload,
    is_supported_event,
    event_type_of,
    transaction_id_of,
    PURCHASE_APPROVED,
    PURCHASE_REFUNDED,
)
from payloads import hotmart_payload


class TestParsePayload:
    def test_approved_purchase_maps_all_fields(self):
        event = parse_payload(hotmart_payload(value=Decimal("297.00")))

        assert event.platform == "hotmart"
        assert event.event_type == PURCHASE_APPROVED
        assert event.status == PurchaseStatus.APPROVED
        assert event.transaction_id == "HP1234567890"
        assert event.buyer_name == "João Comprador"
        assert event.buyer_email == "comprador@example.com"
        assert event.buyer_phone == "5511999990000"
        assert event.product_id == "4455667"
        assert event.product_name == "Curso de Games"
        assert event.amount == Decimal("297.00")
        assert event.currency == "BRL"
        assert event.payment_method == "CREDIT_CARD"
        assert event.occurred_at == datetime(2025, 10, 9, 8, 53, 20, tzinfo=timezone.utc)

    @pytest.mark.parametrize("event_type,status", [
        ("PURCHASE_COMPLETE", PurchaseStatus.APPROVED),
        ("PURCHASE_REFUNDED", PurchaseStatus.REFUNDED),
        ("PURCHASE_CHARGEBACK", PurchaseStatus.CHARGEBACK),
        ("PURCHASE_CANCELED", PurchaseStatus.CANCELED),
        ("PURCHASE_BILLET_PRINTED", PurchaseStatus.PENDING),
        ("PURCHASE_DELAYED", PurchaseStatus.PENDING),
    ])
    def test_event_status_mapping(self, event_type, status):
        assert parse_payload(hotmart_payload(event=event_type)).status == status

    def test_float_amount_keeps_cents(self):
        assert parse_payload(hotmart_payload(value=19.9)).amount == Decimal("19.90")

    def test_integer_amount(self):
        assert parse_payload(hotmart_payload(value=50)).amount == Decimal("50.00")

    def test_buyer_name_falls_back_to_email(self):
        payload = hotmart_payload()
        del payload["data"]["buyer"]["name"]
        assert parse_payload(payload).buyer_name == "comprador@example.com"

    def test_phone_falls_back_to_phone_field(self):
        payload = hotmart_payload()
        del payload["data"]["buyer"]["checkout_phone"]
        payload["data"]["buyer"]["phone"] = "5531911112222"
        assert parse_payload(payload).buyer_phone == "5531911112222"

    def test_missing_currency_left_empty(self):
        payload = hotmart_payload()
        del payload["data"]["purchase"]["price"]["currency_value"]
        assert parse_payload(payload).currency == ""

    def test_missing_dates_gives_none(self):
        payload = hotmart_payload()
        del payload["creation_date"]
        del payload["data"]["purchase"]["approved_date"]
        del payload["data"]["purchase"]["order_date"]
        assert parse_payload(payload).occurred_at is None

    @pytest.mark.parametrize("path,field", [
        (("data", "purchase"), "transaction"),
        (("data", "buyer"), "email"),
        (("data", "product"), "name"),
        (("data", "purchase", "price"), "value"),
    ])
    def test_missing_required_field_raises(self, path, field):
        payload = copy.deepcopy(hotmart_payload())
        node = payload
        for key in path:
            node = node[key]
        del node[field]

        with pytest.raises(ParseError) as exc:
            parse_payload(payload)
        assert field in str(exc.value)

    def test_missing_data_raises(self):
        with pytest.raises(ParseError):
            parse_payload({"event": "PURCHASE_APPROVED"})

    def test_non_object_payload_raises(self):
        with pytest.raises(ParseError):
            parse_payload(["PURCHASE_APPROVED"])

    def test_invalid_amount_raises(self):
        with pytest.raises(ParseError):
            parse_payload(hotmart_payload(value="abc"))

    def test_negative_amount_raises(self):
        with pytest.raises(ParseError):
            parse_payload(hotmart_payload(value=-10))

    def test_amount_too_large_for_money_column_raises(self):
        with pytest.raises(ParseError) as exc:
            parse_payload(hotmart_payload(value=10 ** 10))
        assert "out of range" in str(exc.value)

    def test_amount_rounding_up_past_money_column_raises(self):
        with pytest.raises(ParseError):
            parse_payload(hotmart_payload(value=Decimal("9999999999.999")))

    def test_overlong_product_name_raises(self):
        payload = hotmart_payload()
        payload["data"]["product"]["name"] = "P" * 256
        with pytest.raises(ParseError) as exc:
            parse_payload(payload)
        assert "data.product.name" in str(exc.value)

    def test_overlong_optional_fields_are_cut(self):
        payload = hotmart_payload()
        payload["data"]["buyer"]["name"] = "Ana " * 100
        payload["data"]["buyer"]["checkout_phone"] = "5" * 80
        event = parse_payload(payload)
        assert len(event.buyer_name) <= 255
        assert event.buyer_name.startswith("Ana Ana")
        assert event.buyer_phone == "5" * 50

    def test_unsupported_event_raises(self):
        with pytest.raises(ParseError):
            parse_payload(hotmart_payload(event="SUBSCRIPTION_CANCELLATION"))


class TestEventHelpers:
    def test_supported_events(self):
        assert is_supported_event(PURCHASE_APPROVED) is True
        assert is_supported_event(PURCHASE_REFUNDED) is True
        assert is_supported_event("SUBSCRIPTION_CANCELLATION") is False

    def test_event_type_of(self):
        assert event_type_of(hotmart_payload()) == PURCHASE_APPROVED
        assert event_type_of({"data": {}}) is None
        assert event_type_of("not a dict") is None

    def test_transaction_id_of_is_best_effort(self):
        assert transaction_id_of(hotmart_payload(transaction="HP42")) == "HP42"
        assert transaction_id_of({"event": "PURCHASE_APPROVED"}) is None
        assert transaction_id_of(None) is None
