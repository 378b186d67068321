"""Domain models for payment notifications and reconciliation."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements.models import SubscriptionStatus, Tier

PAYMENT_STATUS_COMPLETE = "COMPLETE"
SUBSCRIPTION_PAYMENT_KIND = "subscription"


class ReconciliationOutcome(str, Enum):
    """Result of applying one payment event to an entitlement record."""

    UNCHANGED = "unchanged"
    UPGRADED = "upgraded"
    DOWNGRADED = "downgraded"
    REJECTED_INVALID = "rejected_invalid"
    REJECTED_UNVERIFIED = "rejected_unverified"
    PERSIST_FAILED_FALLBACK = "persist_failed_fallback"
    PERSIST_FAILED_FATAL = "persist_failed_fatal"


class TransactionStatus(str, Enum):
    COMPLETED = "completed"


class PaymentEvent(BaseModel):
    """Normalized view of one inbound gateway notification."""

    payment_id: Optional[str] = None
    merchant_payment_id: Optional[str] = None
    status: Optional[str] = None
    gross_amount: Optional[Decimal] = None
    fee_amount: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    correlation_user_id: Optional[str] = None
    correlation_tier: Optional[str] = None
    correlation_kind: Optional[str] = None
    name_first: Optional[str] = None
    name_last: Optional[str] = None
    email_address: Optional[str] = None
    signature: Optional[str] = None
    raw_fields: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def is_successful(self, success_status: str = PAYMENT_STATUS_COMPLETE) -> bool:
        return self.status == success_status

    @property
    def customer_name(self) -> Optional[str]:
        parts = [part for part in (self.name_first, self.name_last) if part]
        return " ".join(parts) if parts else None


class TransactionRecord(BaseModel):
    """Append-only ledger entry for a successful gateway payment."""

    transaction_id: Optional[int] = None
    user_id: str
    tier: Tier
    gateway_payment_id: str
    merchant_payment_id: Optional[str] = None
    amount_gross: Optional[Decimal] = None
    amount_fee: Optional[Decimal] = None
    amount_net: Optional[Decimal] = None
    status: TransactionStatus = TransactionStatus.COMPLETED
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


class ReconciliationResult(BaseModel):
    """Outcome of a successful pass through the reconciliation state machine."""

    outcome: ReconciliationOutcome
    user_id: Optional[str] = None
    payment_id: Optional[str] = None
    tier: Optional[Tier] = None
    previous_tier: Optional[Tier] = None
    status: Optional[SubscriptionStatus] = None
    writer: Optional[str] = None
    verified: bool = True
    ledger_recorded: bool = False
    warnings: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def mutated(self) -> bool:
        return self.outcome in {ReconciliationOutcome.UPGRADED, ReconciliationOutcome.DOWNGRADED}
