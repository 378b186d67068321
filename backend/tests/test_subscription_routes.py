from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest
from fastapi import HTTPException

from backend.app.billing import (
    PrivilegedEntitlementWriter,
    ReconciliationService,
    SelfServiceEntitlementWriter,
)
from backend.app.entitlements import EntitlementConfig, EntitlementQueryService, EntitlementRecord, Tier
from backend.app.routes import subscriptions as subscription_routes
from backend.app.services.identity import AuthenticatedIdentity, JWTIdentityVerifier, create_id_token
from backend.tests.fakes import FakeEntitlementStore, FakeLedger, FixedClock, make_config, notification_body

SECRET = "route-secret"
CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)
UPDATED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store() -> FakeEntitlementStore:
    store = FakeEntitlementStore()
    store.add(EntitlementRecord(user_id="user-1", tier=Tier.PRO, payment_token="1089250", created_at=CREATED, updated_at=UPDATED))
    return store


@pytest.fixture
def reconciliation_service(store) -> ReconciliationService:
    return ReconciliationService(
        privileged_writer=PrivilegedEntitlementWriter(store),
        ledger=FakeLedger(),
        config=make_config(),
        self_writer_factory=lambda uid: SelfServiceEntitlementWriter(store, acting_user_id=uid),
        clock=FixedClock(),
    )


@pytest.fixture(autouse=True)
def wired_services(monkeypatch, store, reconciliation_service):
    query_service = EntitlementQueryService(
        store,
        EntitlementConfig(admin_emails=frozenset({"ops@example.com"}), store_timeout_seconds=5.0),
    )
    verifier = JWTIdentityVerifier(SECRET)
    original_authenticate = subscription_routes.authenticate
    monkeypatch.setattr(
        subscription_routes,
        "authenticate",
        lambda authorization: original_authenticate(authorization, verifier),
    )
    monkeypatch.setattr(subscription_routes, "get_entitlement_query_service", lambda: query_service)
    monkeypatch.setattr(subscription_routes, "get_reconciliation_service", lambda: reconciliation_service)


def bearer(uid: str, email: str | None = None) -> str:
    return f"Bearer {create_id_token(SECRET, uid=uid, email=email)}"


def test_current_subscription_uses_epoch_millis() -> None:
    response = subscription_routes.get_current_subscription(authorization=bearer("user-1"), x_user_id=None, uid=None)

    assert response.fallback is False
    assert response.source == "store"
    assert response.subscription.tier == Tier.PRO
    assert response.subscription.payment_token == "1089250"
    assert response.subscription.created_at == 1704067200000
    assert response.subscription.updated_at == 1714564800000
    dumped = response.model_dump(by_alias=True)
    assert dumped["subscription"]["createdAt"] == 1704067200000


def test_admin_email_sees_admin_tier() -> None:
    response = subscription_routes.get_current_subscription(
        authorization=bearer("ops-1", "ops@example.com"),
        x_user_id=None,
        uid=None,
    )

    assert response.subscription.tier == Tier.ADMIN
    assert response.source == "admin_override"


def test_unauthenticated_with_hint_gets_free_fallback() -> None:
    response = subscription_routes.get_current_subscription(authorization=None, x_user_id="user-1", uid=None)

    assert response.fallback is True
    assert response.warnings == ["subscription_fallback"]
    assert response.subscription.tier == Tier.FREE


def test_uid_query_also_enables_fallback() -> None:
    response = subscription_routes.get_current_subscription(authorization="Bearer broken", x_user_id=None, uid="user-7")

    assert response.fallback is True


def test_unauthenticated_without_hint_is_rejected() -> None:
    with pytest.raises(HTTPException) as exc:
        subscription_routes.get_current_subscription(authorization=None, x_user_id=None, uid=None)

    assert exc.value.status_code == 401


def test_store_outage_is_reported_as_fallback(store) -> None:
    store.unavailable = True

    response = subscription_routes.get_current_subscription(authorization=bearer("user-1"), x_user_id=None, uid=None)

    assert response.fallback is True
    assert response.subscription.tier == Tier.FREE
    assert response.source == "store_unavailable"


def test_feature_access() -> None:
    identity = AuthenticatedIdentity(uid="user-1")

    allowed = subscription_routes.check_feature_access("customDomain", identity=identity)
    denied = subscription_routes.check_feature_access("eCommerce", identity=identity)
    unknown = subscription_routes.check_feature_access("holodeck", identity=identity)

    assert allowed.allowed is True
    assert allowed.tier == Tier.PRO
    assert allowed.limits["websites"] == 3
    assert denied.allowed is False
    assert unknown.allowed is False


def test_feature_access_resolves_tier_once(monkeypatch, store, caplog) -> None:
    reads = []
    original_get = store.get
    monkeypatch.setattr(store, "get", lambda user_id: reads.append(user_id) or original_get(user_id))

    response = subscription_routes.check_feature_access("eCommerce", identity=AuthenticatedIdentity(uid="user-1"))

    assert response.allowed is False
    assert reads == ["user-1"]

    with caplog.at_level(logging.WARNING, logger="entitlements"):
        admin = subscription_routes.check_feature_access(
            "adminPanel",
            identity=AuthenticatedIdentity(uid="user-9", email="ops@example.com"),
        )

    assert admin.allowed is True
    assert admin.tier == Tier.ADMIN
    assert caplog.text.count("Admin allow-list override activated") == 1


def test_transactions_list_only_callers_entries(reconciliation_service) -> None:
    reconciliation_service.process_notification(notification_body())
    reconciliation_service.process_notification(notification_body(custom_str1="user-2", pf_payment_id="2000"))

    response = subscription_routes.list_transactions(limit=20, identity=AuthenticatedIdentity(uid="user-1"))

    assert [entry.gateway_payment_id for entry in response.transactions] == ["1089250"]
    assert response.model_dump(by_alias=True)["transactions"][0]["paymentId"] == "1089250"
