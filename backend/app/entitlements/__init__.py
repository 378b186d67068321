"""Entitlements domain models and services."""

from .catalog import (
    FEATURE_MINIMUM_TIER,
    TIER_CATALOG,
    TierDefinition,
    get_tier_definition,
    is_paid_tier,
    normalize_tier,
    paid_tiers,
    parse_feature,
    parse_tier,
    rank,
)
from .config import EntitlementConfig, load_entitlement_config
from .exceptions import StoreError, StorePermissionDenied, StoreUnavailable
from .models import (
    EntitlementRecord,
    EntitlementUpdate,
    Feature,
    SubscriptionStatus,
    Tier,
    TierLimits,
    TierResolution,
    TierSource,
)
from .repository import EntitlementStore, PostgresEntitlementStore
from .service import EntitlementQueryService

__all__ = [
    "FEATURE_MINIMUM_TIER",
    "TIER_CATALOG",
    "TierDefinition",
    "get_tier_definition",
    "is_paid_tier",
    "normalize_tier",
    "paid_tiers",
    "parse_feature",
    "parse_tier",
    "rank",
    "EntitlementConfig",
    "load_entitlement_config",
    "StoreError",
    "StorePermissionDenied",
    "StoreUnavailable",
    "EntitlementRecord",
    "EntitlementUpdate",
    "Feature",
    "SubscriptionStatus",
    "Tier",
    "TierLimits",
    "TierResolution",
    "TierSource",
    "EntitlementStore",
    "PostgresEntitlementStore",
    "EntitlementQueryService",
]
