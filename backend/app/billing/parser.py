"""Decoding of inbound PayFast ITN (instant transaction notification) bodies."""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Union
from urllib.parse import parse_qsl

from .exceptions import MalformedPayload
from .models import PaymentEvent


def _decode_form(body: Union[bytes, str]) -> Dict[str, str]:
    try:
        text = body.decode("utf-8") if isinstance(body, (bytes, bytearray)) else body
        pairs = parse_qsl(
            text,
            keep_blank_values=True,
            strict_parsing=True,
            encoding="utf-8",
            errors="strict",
        )
    except ValueError as exc:
        raise MalformedPayload(f"Notification body is not form encoded: {exc}") from exc

    if not pairs:
        raise MalformedPayload("Notification body is empty")

    fields: Dict[str, str] = {}
    for name, value in pairs:
        if name in fields:
            raise MalformedPayload(f"Notification field {name!r} appears more than once")
        fields[name] = value
    return fields


def _parse_amount(value: Optional[str]) -> Optional[Decimal]:
    if value is None or not value.strip():
        return None
    try:
        amount = Decimal(value.strip())
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_notification(body: Union[bytes, str]) -> PaymentEvent:
    """Build a :class:`PaymentEvent` from a raw form-encoded body.

    Field order and values are preserved verbatim in ``raw_fields``; values
    are not trimmed here because the signature must be computed over exactly
    what the gateway signed.
    """

    fields = _decode_form(body)
    return PaymentEvent(
        payment_id=fields.get("pf_payment_id") or None,
        merchant_payment_id=fields.get("m_payment_id") or None,
        status=fields.get("payment_status"),
        gross_amount=_parse_amount(fields.get("amount_gross")),
        fee_amount=_parse_amount(fields.get("amount_fee")),
        net_amount=_parse_amount(fields.get("amount_net")),
        correlation_user_id=fields.get("custom_str1") or None,
        correlation_tier=fields.get("custom_str2") or None,
        correlation_kind=fields.get("custom_str3") or None,
        name_first=fields.get("name_first") or None,
        name_last=fields.get("name_last") or None,
        email_address=fields.get("email_address") or None,
        signature=fields.get("signature") or None,
        raw_fields=fields,
    )


__all__ = ["parse_notification"]
