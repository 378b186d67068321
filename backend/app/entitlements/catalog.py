"""Static catalog definitions for tiers and feature requirements."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .models import Feature, Tier, TierLimits

_MB = 1024 * 1024
_GB = 1024 * _MB


@dataclass(frozen=True)
class TierDefinition:
    """Describes a subscription tier, its rank and its price."""

    key: Tier
    rank: int
    price_cents: int
    display_name: str
    description: str
    limits: TierLimits

    @property
    def is_paid(self) -> bool:
        return self.price_cents > 0

    @property
    def price_display(self) -> str:
        """Price in rands formatted the way the gateway expects (``100.00``)."""

        return f"{self.price_cents / 100:.2f}"


TIER_CATALOG: Dict[Tier, TierDefinition] = {
    Tier.FREE: TierDefinition(
        key=Tier.FREE,
        rank=0,
        price_cents=0,
        display_name="Free",
        description="Single page website with platform branding",
        limits=TierLimits(websites=1, storage_bytes=50 * _MB, pages=1, templates=0),
    ),
    Tier.STARTER: TierDefinition(
        key=Tier.STARTER,
        rank=1,
        price_cents=0,
        display_name="Starter Plan",
        description="Basic website creation with limited features",
        limits=TierLimits(websites=3, storage_bytes=500 * _MB, pages=1, templates=5),
    ),
    Tier.PRO: TierDefinition(
        key=Tier.PRO,
        rank=2,
        price_cents=10000,
        display_name="Pro Subscription",
        description="Professional one-page websites with templates",
        limits=TierLimits(websites=3, storage_bytes=1 * _GB, pages=1, templates=-1),
    ),
    Tier.BUSINESS: TierDefinition(
        key=Tier.BUSINESS,
        rank=3,
        price_cents=25000,
        display_name="Business Subscription",
        description="Advanced one-page websites with business tools",
        limits=TierLimits(websites=10, storage_bytes=5 * _GB, pages=1, templates=-1),
    ),
    Tier.PREMIUM: TierDefinition(
        key=Tier.PREMIUM,
        rank=4,
        price_cents=50000,
        display_name="Premium Subscription",
        description="Full multi-page websites with enterprise features",
        limits=TierLimits(websites=-1, storage_bytes=20 * _GB, pages=-1, templates=-1),
    ),
    Tier.ADMIN: TierDefinition(
        key=Tier.ADMIN,
        rank=5,
        price_cents=0,
        display_name="Administrator",
        description="Operator access to every feature",
        limits=TierLimits(websites=-1, storage_bytes=-1, pages=-1, templates=-1),
    ),
}

FEATURE_MINIMUM_TIER: Dict[Feature, Tier] = {
    Feature.ADMIN_PANEL: Tier.ADMIN,
    Feature.TEMPLATE_MANAGEMENT: Tier.ADMIN,
    Feature.USER_MANAGEMENT: Tier.ADMIN,
    Feature.SYSTEM_SETTINGS: Tier.ADMIN,
    Feature.MULTI_PAGE_WEBSITES: Tier.PREMIUM,
    Feature.TEMPLATES: Tier.PRO,
    Feature.CUSTOM_DOMAIN: Tier.PRO,
    Feature.REMOVE_BRANDING: Tier.PRO,
    Feature.PAYFAST: Tier.PRO,
    Feature.ADVANCED_PAYFAST: Tier.BUSINESS,
    Feature.E_COMMERCE: Tier.PREMIUM,
    Feature.BOOKINGS: Tier.BUSINESS,
    Feature.CUSTOMER_MANAGEMENT: Tier.BUSINESS,
    Feature.EMAIL_MARKETING: Tier.BUSINESS,
    Feature.TEAM_COLLABORATION: Tier.PREMIUM,
    Feature.API_ACCESS: Tier.PREMIUM,
    Feature.WHITE_LABEL: Tier.PREMIUM,
    Feature.ADVANCED_ANALYTICS: Tier.PRO,
    Feature.CONVERSION_TRACKING: Tier.BUSINESS,
}


def _validate_catalog() -> None:
    missing_tiers = [tier for tier in Tier if tier not in TIER_CATALOG]
    if missing_tiers:
        raise RuntimeError(f"Tier catalog is missing definitions for: {missing_tiers}")

    ranks = [TIER_CATALOG[tier].rank for tier in Tier]
    if ranks != sorted(ranks) or len(set(ranks)) != len(ranks):
        raise RuntimeError("Tier ranks must be unique and follow declaration order")

    missing_features = [feature for feature in Feature if feature not in FEATURE_MINIMUM_TIER]
    if missing_features:
        raise RuntimeError(f"Feature table is missing entries for: {missing_features}")


_validate_catalog()


def get_tier_definition(tier: Tier) -> TierDefinition:
    """Return a tier definition, raising if unsupported."""

    try:
        return TIER_CATALOG[tier]
    except KeyError as exc:  # pragma: no cover - guarded by static catalog
        raise KeyError(f"Unknown tier: {tier}") from exc


def rank(tier: Tier) -> int:
    return get_tier_definition(tier).rank


def parse_tier(value: Optional[str]) -> Tier:
    """Strictly convert an untrusted string into a :class:`Tier`."""

    if value is None:
        raise ValueError("tier is required")
    candidate = value.strip().lower()
    try:
        return Tier(candidate)
    except ValueError as exc:
        raise ValueError(f"Unknown tier: {value!r}") from exc


def normalize_tier(value: Optional[str]) -> Tier:
    """Leniently read a stored tier value, treating unknown values as free."""

    try:
        return parse_tier(value)
    except ValueError:
        return Tier.FREE


def parse_feature(value: str) -> Optional[Feature]:
    """Return the matching :class:`Feature` or ``None`` for unknown names."""

    try:
        return Feature(value)
    except ValueError:
        return None


def is_paid_tier(tier: Tier) -> bool:
    return get_tier_definition(tier).is_paid


def paid_tiers() -> Tuple[Tier, ...]:
    return tuple(tier for tier in Tier if is_paid_tier(tier))
