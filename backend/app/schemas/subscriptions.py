"""API schemas for entitlement read endpoints."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements import EntitlementRecord, SubscriptionStatus, Tier
from ..feature_gates import EntitlementContext

SUBSCRIPTION_FALLBACK_WARNING = "subscription_fallback"


def to_epoch_millis(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


class SubscriptionSnapshot(BaseModel):
    """Entitlement record with millisecond epoch timestamps."""

    tier: Tier
    status: SubscriptionStatus
    payment_token: Optional[str] = Field(alias="paymentToken", default=None)
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")
    trial_ends_at: Optional[int] = Field(alias="trialEndsAt", default=None)
    next_billing_date: Optional[int] = Field(alias="nextBillingDate", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: EntitlementRecord, *, tier: Optional[Tier] = None) -> "SubscriptionSnapshot":
        return cls(
            tier=tier or record.tier,
            status=record.status,
            payment_token=record.payment_token,
            created_at=to_epoch_millis(record.created_at),
            updated_at=to_epoch_millis(record.updated_at),
            trial_ends_at=to_epoch_millis(record.trial_ends_at),
            next_billing_date=to_epoch_millis(record.next_billing_date),
        )


class CurrentSubscriptionResponse(BaseModel):
    success: bool = True
    subscription: SubscriptionSnapshot
    fallback: bool = False
    source: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class FeatureAccessResponse(BaseModel):
    feature: str
    allowed: bool
    tier: Tier
    fallback: bool = False
    limits: Dict[str, int] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_context(cls, feature: str, context: EntitlementContext) -> "FeatureAccessResponse":
        return cls(
            feature=feature,
            allowed=context.can(feature),
            tier=context.tier,
            fallback=context.fallback,
            limits=context.limits.to_dict(),
        )
