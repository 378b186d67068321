"""Builds signed payment forms for the PayFast hosted checkout."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict

from ..entitlements.catalog import get_tier_definition, paid_tiers
from ..entitlements.models import Tier
from .config import PayFastConfig
from .exceptions import InvalidCorrelation
from .signature import SIGNATURE_FIELD, generate_signature


class CheckoutForm(BaseModel):
    """Field set to post to the gateway's process URL."""

    process_url: str
    merchant_payment_id: str
    fields: Dict[str, str]

    model_config = ConfigDict(frozen=True)


def merchant_payment_id_for(user_id: str, tier: Tier, now: datetime) -> str:
    """Correlation id echoed back by the gateway as ``m_payment_id``."""

    return f"sub_{user_id}_{tier.value}_{int(now.timestamp() * 1000)}"


def build_checkout(
    config: PayFastConfig,
    *,
    user_id: str,
    tier: Tier,
    name_first: Optional[str] = None,
    name_last: Optional[str] = None,
    email_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CheckoutForm:
    purchasable = paid_tiers()
    if tier not in purchasable:
        raise InvalidCorrelation(
            f"Tier {tier.value!r} cannot be purchased; choose one of "
            + ", ".join(option.value for option in purchasable),
            user_id=user_id,
        )

    definition = get_tier_definition(tier)
    payment_id = merchant_payment_id_for(user_id, tier, now or datetime.now(timezone.utc))

    # The gateway recomputes the signature in this exact field order.
    fields: Dict[str, str] = {
        "merchant_id": config.merchant_id,
        "merchant_key": config.merchant_key,
        "return_url": config.return_url,
        "cancel_url": config.cancel_url,
        "notify_url": config.notify_url,
        "name_first": name_first or "Customer",
        "name_last": name_last or "",
        "email_address": email_address or "",
        "m_payment_id": payment_id,
        "amount": definition.price_display,
        "item_name": definition.display_name,
        "item_description": definition.description,
        "custom_str1": user_id,
        "custom_str2": tier.value,
        "custom_str3": config.payment_kind,
    }
    fields = {name: value for name, value in fields.items() if value}
    fields[SIGNATURE_FIELD] = generate_signature(fields, config.passphrase)

    return CheckoutForm(process_url=config.process_url, merchant_payment_id=payment_id, fields=fields)


__all__ = ["CheckoutForm", "build_checkout", "merchant_payment_id_for"]
