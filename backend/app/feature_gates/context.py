"""Convenience wrapper around a tier resolution for feature gating."""
from __future__ import annotations

from dataclasses import dataclass

from ..entitlements import (
    FEATURE_MINIMUM_TIER,
    Tier,
    TierLimits,
    TierResolution,
    get_tier_definition,
    parse_feature,
    rank,
)
from .exceptions import FeatureGateError
from .quota import UsageLimitEvaluation, assert_usage_limit, evaluate_usage_limit


@dataclass(frozen=True)
class EntitlementContext:
    """Facade exposing gating-centric helpers for one resolved tier.

    Resolve once per request with
    :meth:`EntitlementQueryService.get_tier` and pass the context around
    instead of re-querying the store for every check.
    """

    resolution: TierResolution

    @property
    def tier(self) -> Tier:
        return self.resolution.tier

    @property
    def fallback(self) -> bool:
        return self.resolution.fallback

    @property
    def limits(self) -> TierLimits:
        return get_tier_definition(self.tier).limits

    def has_at_least(self, required_tier: Tier) -> bool:
        return rank(self.tier) >= rank(required_tier)

    def can(self, feature_name: str) -> bool:
        """Return whether the feature is unlocked. Unknown names are refused."""

        feature = parse_feature(feature_name)
        if feature is None:
            return False
        return self.has_at_least(FEATURE_MINIMUM_TIER[feature])

    def require(self, feature_name: str, *, error_code: str = "feature_not_available") -> None:
        if not self.can(feature_name):
            raise FeatureGateError(
                code=error_code,
                message=f"Feature '{feature_name}' is not available on your plan.",
                detail={"feature": feature_name, "tier": self.tier.value},
            )

    def evaluate_websites(self, *, current: int, requested: int = 1) -> UsageLimitEvaluation:
        return evaluate_usage_limit(resource="websites", usage=current, limit=self.limits.websites, requested=requested)

    def assert_websites(self, *, current: int, requested: int = 1) -> UsageLimitEvaluation:
        return assert_usage_limit(resource="websites", usage=current, limit=self.limits.websites, requested=requested)

    def assert_pages(self, *, current: int, requested: int = 1) -> UsageLimitEvaluation:
        return assert_usage_limit(resource="pages", usage=current, limit=self.limits.pages, requested=requested)

    def assert_storage(self, *, used_bytes: int, upload_bytes: int) -> UsageLimitEvaluation:
        return assert_usage_limit(
            resource="storage bytes",
            usage=used_bytes,
            limit=self.limits.storage_bytes,
            requested=upload_bytes,
            error_code="storage_quota_exceeded",
        )
