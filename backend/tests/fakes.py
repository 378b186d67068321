"""In-memory collaborators shared by the billing and entitlement tests."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlencode

from backend.app.billing import PayFastConfig, TransactionRecord, generate_signature
from backend.app.billing.models import PAYMENT_STATUS_COMPLETE, SUBSCRIPTION_PAYMENT_KIND
from backend.app.entitlements import (
    EntitlementRecord,
    EntitlementUpdate,
    StorePermissionDenied,
    StoreUnavailable,
)

PASSPHRASE = "jt7NOE43FZPn"


def make_config(passphrase: str = PASSPHRASE) -> PayFastConfig:
    return PayFastConfig(
        merchant_id="10000100",
        merchant_key="46f0cd694581a",
        passphrase=passphrase,
        sandbox=True,
        app_base_url="https://builder.example.com",
        success_status=PAYMENT_STATUS_COMPLETE,
        payment_kind=SUBSCRIPTION_PAYMENT_KIND,
    )


class FixedClock:
    def __init__(self, now: Optional[datetime] = None) -> None:
        self.now = now or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class FakeEntitlementStore:
    def __init__(self) -> None:
        self.records: Dict[str, EntitlementRecord] = {}
        self.deny_writes = False
        self.unavailable = False
        self.write_privilege = True
        self.ignore_writes = False
        self.merge_calls: List[tuple[str, EntitlementUpdate]] = []

    def add(self, record: EntitlementRecord) -> None:
        self.records[record.user_id] = record

    def _check_available(self) -> None:
        if self.unavailable:
            raise StoreUnavailable("store offline")

    def get(self, user_id: str) -> Optional[EntitlementRecord]:
        self._check_available()
        return self.records.get(user_id)

    def get_or_create(self, user_id: str) -> EntitlementRecord:
        self._check_available()
        if user_id not in self.records:
            self.records[user_id] = EntitlementRecord.default_for(user_id)
        return self.records[user_id]

    def merge(self, user_id: str, update: EntitlementUpdate) -> EntitlementRecord:
        self._check_available()
        if self.deny_writes:
            raise StorePermissionDenied("permission denied for table entitlements", user_id=user_id)
        self.merge_calls.append((user_id, update))
        existing = self.records.get(user_id)
        if existing is None:
            merged = EntitlementRecord(user_id=user_id, created_at=update.updated_at, **update.changes())
        else:
            merged = existing.model_copy(update=update.changes())
        if not self.ignore_writes:
            self.records[user_id] = merged
        return merged

    def has_write_privilege(self) -> bool:
        self._check_available()
        return self.write_privilege


class FakeLedger:
    def __init__(self) -> None:
        self.records: Dict[str, TransactionRecord] = {}
        self.unavailable = False
        self.fail_appends = False

    def append(self, record: TransactionRecord) -> bool:
        if self.unavailable or self.fail_appends:
            raise StoreUnavailable("ledger offline")
        if record.gateway_payment_id in self.records:
            return False
        self.records[record.gateway_payment_id] = record
        return True

    def contains(self, gateway_payment_id: str) -> bool:
        if self.unavailable:
            raise StoreUnavailable("ledger offline")
        return gateway_payment_id in self.records

    def list_for_user(self, user_id: str, *, limit: int = 20) -> Sequence[TransactionRecord]:
        matching = [record for record in self.records.values() if record.user_id == user_id]
        return sorted(matching, key=lambda record: record.created_at, reverse=True)[:limit]


def notification_body(passphrase: str = PASSPHRASE, **overrides: str) -> bytes:
    """Form-encoded ITN body for ``user-1`` buying pro, signed with ``passphrase``."""

    fields: Dict[str, str] = {
        "m_payment_id": "sub_user-1_pro_1714564800000",
        "pf_payment_id": "1089250",
        "payment_status": "COMPLETE",
        "item_name": "Pro Subscription",
        "amount_gross": "100.00",
        "amount_fee": "-2.30",
        "amount_net": "97.70",
        "custom_str1": "user-1",
        "custom_str2": "pro",
        "custom_str3": "subscription",
        "name_first": "Jane",
        "name_last": "Doe",
        "email_address": "jane@example.com",
    }
    fields.update(overrides)
    fields["signature"] = generate_signature(fields, passphrase)
    return urlencode(fields).encode("utf-8")
