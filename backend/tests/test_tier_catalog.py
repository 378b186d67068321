from __future__ import annotations

import pytest

from backend.app.entitlements import (
    FEATURE_MINIMUM_TIER,
    TIER_CATALOG,
    Feature,
    Tier,
    get_tier_definition,
    is_paid_tier,
    normalize_tier,
    paid_tiers,
    parse_feature,
    parse_tier,
    rank,
)


def test_ranks_follow_tier_order() -> None:
    assert [rank(tier) for tier in Tier] == [0, 1, 2, 3, 4, 5]
    assert rank(Tier.ADMIN) > rank(Tier.PREMIUM) > rank(Tier.BUSINESS) > rank(Tier.PRO)


def test_every_tier_and_feature_is_catalogued() -> None:
    assert set(TIER_CATALOG) == set(Tier)
    assert set(FEATURE_MINIMUM_TIER) == set(Feature)


def test_only_priced_tiers_are_purchasable() -> None:
    assert paid_tiers() == (Tier.PRO, Tier.BUSINESS, Tier.PREMIUM)
    assert is_paid_tier(Tier.STARTER) is False
    assert is_paid_tier(Tier.ADMIN) is False
    assert get_tier_definition(Tier.PRO).price_display == "100.00"
    assert get_tier_definition(Tier.PREMIUM).price_display == "500.00"


def test_parse_tier_is_strict() -> None:
    assert parse_tier(" Business ") == Tier.BUSINESS
    with pytest.raises(ValueError):
        parse_tier("enterprise")
    with pytest.raises(ValueError):
        parse_tier(None)


def test_normalize_tier_reads_unknown_values_as_free() -> None:
    assert normalize_tier("premium") == Tier.PREMIUM
    assert normalize_tier("gold") == Tier.FREE
    assert normalize_tier(None) == Tier.FREE


def test_parse_feature_returns_none_for_unknown_names() -> None:
    assert parse_feature("customDomain") == Feature.CUSTOM_DOMAIN
    assert parse_feature("teleportation") is None


def test_limits_grow_with_rank() -> None:
    free = get_tier_definition(Tier.FREE).limits
    premium = get_tier_definition(Tier.PREMIUM).limits

    assert free.websites == 1
    assert free.pages == 1
    assert premium.websites == -1
    assert premium.pages == -1
    assert premium.to_dict()["storageBytes"] == 20 * 1024 ** 3
