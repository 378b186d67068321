"""Domain models for subscription tiers and stored entitlements."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Tier(str, Enum):
    """Canonical identifiers for subscription tiers, lowest rank first."""

    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    BUSINESS = "business"
    PREMIUM = "premium"
    ADMIN = "admin"


class SubscriptionStatus(str, Enum):
    """Lifecycle state of a user's entitlement record."""

    ACTIVE = "active"
    PENDING = "pending"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Feature(str, Enum):
    """Closed set of gated product features."""

    ADMIN_PANEL = "adminPanel"
    TEMPLATE_MANAGEMENT = "templateManagement"
    USER_MANAGEMENT = "userManagement"
    SYSTEM_SETTINGS = "systemSettings"
    MULTI_PAGE_WEBSITES = "multiPageWebsites"
    TEMPLATES = "templates"
    CUSTOM_DOMAIN = "customDomain"
    REMOVE_BRANDING = "removeBranding"
    PAYFAST = "payfast"
    ADVANCED_PAYFAST = "advancedPayfast"
    E_COMMERCE = "eCommerce"
    BOOKINGS = "bookings"
    CUSTOMER_MANAGEMENT = "customerManagement"
    EMAIL_MARKETING = "emailMarketing"
    TEAM_COLLABORATION = "teamCollaboration"
    API_ACCESS = "apiAccess"
    WHITE_LABEL = "whiteLabel"
    ADVANCED_ANALYTICS = "advancedAnalytics"
    CONVERSION_TRACKING = "conversionTracking"


class TierSource(str, Enum):
    """Where a resolved tier came from."""

    ADMIN_OVERRIDE = "admin_override"
    STORE = "store"
    MISSING_RECORD = "missing_record"
    STORE_UNAVAILABLE = "store_unavailable"


@dataclass(frozen=True)
class TierLimits:
    """Usage ceilings attached to a tier. ``-1`` means unlimited."""

    websites: int
    storage_bytes: int
    pages: int
    templates: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "websites": self.websites,
            "storageBytes": self.storage_bytes,
            "pages": self.pages,
            "templates": self.templates,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntitlementRecord(BaseModel):
    """Durable per-user entitlement state."""

    user_id: str = Field(min_length=1)
    tier: Tier = Tier.FREE
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    payment_token: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    trial_ends_at: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="after")
    def _check_timestamps(self) -> "EntitlementRecord":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not precede created_at")
        return self

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE

    @classmethod
    def default_for(cls, user_id: str, *, now: Optional[datetime] = None) -> "EntitlementRecord":
        """Return the implicit free/active record of a never-seen user."""

        timestamp = now or _utcnow()
        return cls(user_id=user_id, created_at=timestamp, updated_at=timestamp)


class EntitlementUpdate(BaseModel):
    """Partial field set merged onto an existing entitlement record."""

    tier: Optional[Tier] = None
    status: Optional[SubscriptionStatus] = None
    payment_token: Optional[str] = None
    trial_ends_at: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)

    def changes(self) -> Dict[str, object]:
        """Return only the fields that were explicitly provided."""

        return self.model_dump(exclude_none=True)


class TierResolution(BaseModel):
    """Result of a tier lookup, distinguishing confirmed from assumed tiers."""

    user_id: str
    tier: Tier
    source: TierSource
    status: Optional[SubscriptionStatus] = None

    model_config = ConfigDict(frozen=True)

    @property
    def fallback(self) -> bool:
        """``True`` when the tier was assumed rather than read from the store."""

        return self.source in {TierSource.MISSING_RECORD, TierSource.STORE_UNAVAILABLE}
