"""PayFast gateway configuration helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .models import PAYMENT_STATUS_COMPLETE, SUBSCRIPTION_PAYMENT_KIND

SANDBOX_PROCESS_URL = "https://sandbox.payfast.co.za/eng/process"
LIVE_PROCESS_URL = "https://www.payfast.co.za/eng/process"


@dataclass(frozen=True)
class PayFastConfig:
    """Merchant credentials and callback URLs for the PayFast gateway."""

    merchant_id: str
    merchant_key: str
    passphrase: str
    sandbox: bool
    app_base_url: str
    success_status: str
    payment_kind: str

    @property
    def process_url(self) -> str:
        return SANDBOX_PROCESS_URL if self.sandbox else LIVE_PROCESS_URL

    @property
    def return_url(self) -> str:
        return f"{self.app_base_url}/dashboard/payments/success"

    @property
    def cancel_url(self) -> str:
        return f"{self.app_base_url}/dashboard/payments/cancel"

    @property
    def notify_url(self) -> str:
        return f"{self.app_base_url}/api/payfast/webhook"


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def load_payfast_config(env: Optional[Mapping[str, str]] = None) -> PayFastConfig:
    """Load :class:`PayFastConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    app_base_url = (env_mapping.get("APP_BASE_URL") or "http://localhost:3000").rstrip("/")

    return PayFastConfig(
        merchant_id=env_mapping.get("PAYFAST_MERCHANT_ID", ""),
        merchant_key=env_mapping.get("PAYFAST_MERCHANT_KEY", ""),
        passphrase=env_mapping.get("PAYFAST_PASSPHRASE", ""),
        sandbox=_to_bool(env_mapping.get("PAYFAST_SANDBOX"), default=True),
        app_base_url=app_base_url,
        success_status=env_mapping.get("PAYFAST_SUCCESS_STATUS") or PAYMENT_STATUS_COMPLETE,
        payment_kind=env_mapping.get("PAYFAST_PAYMENT_KIND") or SUBSCRIPTION_PAYMENT_KIND,
    )
