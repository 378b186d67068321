from __future__ import annotations

from decimal import Decimal

import pytest

from backend.app.billing import MalformedPayload, parse_notification


def test_parse_notification_extracts_correlation_and_amounts() -> None:
    body = (
        b"m_payment_id=sub_user-1_pro_1714564800000&pf_payment_id=1089250&payment_status=COMPLETE"
        b"&item_name=Pro+Subscription&amount_gross=100.00&amount_fee=-2.30&amount_net=97.70"
        b"&custom_str1=user-1&custom_str2=pro&custom_str3=subscription"
        b"&name_first=Jane&name_last=Doe&email_address=jane%40example.com&signature=abc123"
    )

    event = parse_notification(body)

    assert event.payment_id == "1089250"
    assert event.merchant_payment_id == "sub_user-1_pro_1714564800000"
    assert event.is_successful() is True
    assert event.gross_amount == Decimal("100.00")
    assert event.fee_amount == Decimal("-2.30")
    assert event.net_amount == Decimal("97.70")
    assert event.correlation_user_id == "user-1"
    assert event.correlation_tier == "pro"
    assert event.correlation_kind == "subscription"
    assert event.customer_name == "Jane Doe"
    assert event.email_address == "jane@example.com"
    assert event.signature == "abc123"
    assert list(event.raw_fields)[:3] == ["m_payment_id", "pf_payment_id", "payment_status"]
    assert event.raw_fields["item_name"] == "Pro Subscription"


def test_blank_values_are_kept_in_raw_fields_but_read_as_missing() -> None:
    event = parse_notification("pf_payment_id=&payment_status=CANCELLED&custom_str1=")

    assert event.payment_id is None
    assert event.correlation_user_id is None
    assert event.raw_fields == {"pf_payment_id": "", "payment_status": "CANCELLED", "custom_str1": ""}
    assert event.is_successful() is False


def test_unparseable_amount_is_dropped() -> None:
    event = parse_notification("payment_status=COMPLETE&amount_gross=abc&amount_net=NaN")

    assert event.gross_amount is None
    assert event.net_amount is None


def test_duplicate_field_names_are_rejected() -> None:
    with pytest.raises(MalformedPayload) as exc:
        parse_notification("custom_str2=pro&amount_gross=100.00&custom_str2=premium")

    assert "custom_str2" in exc.value.message
    assert exc.value.status_code == 400


@pytest.mark.parametrize("body", [b"", b"not a form", b"\xff\xfe=1"])
def test_malformed_bodies_are_rejected(body: bytes) -> None:
    with pytest.raises(MalformedPayload) as exc:
        parse_notification(body)

    assert exc.value.status_code == 400
    assert exc.value.payload["outcome"] == "rejected_invalid"
