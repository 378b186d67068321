from __future__ import annotations

import pytest

from backend.app.entitlements import (
    EntitlementConfig,
    EntitlementQueryService,
    EntitlementRecord,
    Tier,
    TierResolution,
    TierSource,
)
from backend.app.feature_gates import (
    UNLIMITED,
    EntitlementContext,
    FeatureGateError,
    UsageLimitEvaluation,
    assert_usage_limit,
    evaluate_usage_limit,
)
from backend.tests.fakes import FakeEntitlementStore


@pytest.fixture
def query_service() -> EntitlementQueryService:
    store = FakeEntitlementStore()
    store.add(EntitlementRecord(user_id="pro-user", tier=Tier.PRO))
    config = EntitlementConfig(admin_emails=frozenset(), store_timeout_seconds=5.0)
    return EntitlementQueryService(store, config)


def context_for(tier: Tier, source: TierSource = TierSource.STORE) -> EntitlementContext:
    return EntitlementContext(TierResolution(user_id="user-1", tier=tier, source=source))


def test_context_from_resolved_tier(query_service) -> None:
    context = EntitlementContext(query_service.get_tier("pro-user"))

    context.require("removeBranding")
    assert context.has_at_least(Tier.STARTER) is True
    assert context.has_at_least(Tier.BUSINESS) is False


def test_require_raises_with_upgrade_path(query_service) -> None:
    context = EntitlementContext(query_service.get_tier("pro-user"))

    with pytest.raises(FeatureGateError) as exc:
        context.require("eCommerce")

    assert exc.value.code == "feature_not_available"
    assert exc.value.status_code == 403
    assert exc.value.payload["feature"] == "eCommerce"
    assert exc.value.payload["upgradePath"] == "/dashboard/subscription"

    http_exc = exc.value.to_http_exception()
    assert http_exc.status_code == 403
    assert http_exc.detail["error"] == "feature_not_available"


def test_unknown_user_only_gets_free_features(query_service) -> None:
    context = EntitlementContext(query_service.get_tier("nobody"))

    assert context.fallback is True
    with pytest.raises(FeatureGateError):
        context.require("templates")


def test_context_helpers() -> None:
    context = context_for(Tier.BUSINESS)

    assert context.can("bookings") is True
    assert context.can("whiteLabel") is False
    assert context.can("notAFeature") is False
    assert context.has_at_least(Tier.PRO) is True
    assert context.fallback is False

    with pytest.raises(FeatureGateError) as exc:
        context.require("apiAccess")
    assert exc.value.payload["tier"] == "business"


def test_context_reports_fallback_resolution() -> None:
    context = context_for(Tier.FREE, TierSource.STORE_UNAVAILABLE)

    assert context.fallback is True
    assert context.limits.websites == 1


def test_website_limit_blocks_free_tier() -> None:
    context = context_for(Tier.FREE)

    evaluation = context.evaluate_websites(current=0)
    assert isinstance(evaluation, UsageLimitEvaluation)
    assert evaluation.allowed is True

    with pytest.raises(FeatureGateError) as exc:
        context.assert_websites(current=1)
    assert exc.value.code == "usage_limit_reached"
    assert exc.value.payload["limit"] == 1


def test_premium_pages_are_unlimited() -> None:
    context = context_for(Tier.PREMIUM)

    evaluation = context.assert_pages(current=250, requested=10)

    assert evaluation.unlimited is True
    assert evaluation.allowed is True


def test_storage_quota() -> None:
    context = context_for(Tier.FREE)
    limit = context.limits.storage_bytes

    context.assert_storage(used_bytes=limit - 10, upload_bytes=10)
    with pytest.raises(FeatureGateError) as exc:
        context.assert_storage(used_bytes=limit - 10, upload_bytes=11)
    assert exc.value.code == "storage_quota_exceeded"


def test_usage_limit_helpers() -> None:
    evaluation = evaluate_usage_limit(resource="websites", usage=2, limit=3, requested=-4)
    assert evaluation.requested == 0
    assert evaluation.to_dict()["projected_usage"] == 2

    assert assert_usage_limit(resource="pages", usage=10_000, limit=UNLIMITED).allowed is True
    with pytest.raises(FeatureGateError):
        assert_usage_limit(resource="websites", usage=3, limit=3)
