"""Service answering tier and feature access questions for users."""
from __future__ import annotations

import logging
from typing import Optional

from .catalog import FEATURE_MINIMUM_TIER, get_tier_definition, parse_feature, rank
from .config import EntitlementConfig
from .exceptions import StoreError
from .models import (
    EntitlementRecord,
    Feature,
    SubscriptionStatus,
    Tier,
    TierLimits,
    TierResolution,
    TierSource,
)
from .repository import EntitlementStore

logger = logging.getLogger("entitlements")


class EntitlementQueryService:
    """Resolves a user's effective tier from the allow-list and the store."""

    def __init__(self, store: EntitlementStore, config: EntitlementConfig) -> None:
        self._store = store
        self._config = config

    def get_tier(self, user_id: str, *, email: Optional[str] = None) -> TierResolution:
        """Return the user's tier, flagging assumed results as fallbacks."""

        if self._config.is_admin_email(email):
            logger.warning(
                "Admin allow-list override activated user=%s email=%s",
                user_id,
                email,
            )
            return TierResolution(
                user_id=user_id,
                tier=Tier.ADMIN,
                source=TierSource.ADMIN_OVERRIDE,
                status=SubscriptionStatus.ACTIVE,
            )

        try:
            record = self._store.get(user_id)
        except StoreError as exc:
            logger.warning(
                "Entitlement store unreachable, assuming free tier user=%s error=%s",
                user_id,
                exc,
            )
            return TierResolution(user_id=user_id, tier=Tier.FREE, source=TierSource.STORE_UNAVAILABLE)

        if record is None:
            return TierResolution(user_id=user_id, tier=Tier.FREE, source=TierSource.MISSING_RECORD)

        effective_tier = record.tier if record.is_active else Tier.FREE
        return TierResolution(
            user_id=user_id,
            tier=effective_tier,
            source=TierSource.STORE,
            status=record.status,
        )

    def has_at_least(self, user_id: str, required_tier: Tier, *, email: Optional[str] = None) -> bool:
        resolution = self.get_tier(user_id, email=email)
        return rank(resolution.tier) >= rank(required_tier)

    def can_access_feature(self, user_id: str, feature_name: str, *, email: Optional[str] = None) -> bool:
        """Check a feature by name. Unknown names are never accessible."""

        feature = feature_name if isinstance(feature_name, Feature) else parse_feature(feature_name)
        if feature is None:
            return False
        return self.has_at_least(user_id, FEATURE_MINIMUM_TIER[feature], email=email)

    def get_limits(self, user_id: str, *, email: Optional[str] = None) -> TierLimits:
        return get_tier_definition(self.get_tier(user_id, email=email).tier).limits

    def get_record(self, user_id: str) -> EntitlementRecord:
        """Return the stored record, creating the default one on first sight."""

        return self._store.get_or_create(user_id)


__all__ = ["EntitlementQueryService"]
