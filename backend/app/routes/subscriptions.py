"""API routes exposing the caller's subscription and feature access."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from ..entitlements import EntitlementRecord, StoreError, SubscriptionStatus, Tier
from ..feature_gates import EntitlementContext
from ..schemas.billing import TransactionListResponse, TransactionOut
from ..schemas.subscriptions import (
    SUBSCRIPTION_FALLBACK_WARNING,
    CurrentSubscriptionResponse,
    FeatureAccessResponse,
    SubscriptionSnapshot,
)
from ..services.billing import get_entitlement_query_service, get_reconciliation_service
from ..services.identity import AuthenticatedIdentity, UnauthorizedError, authenticate
from .payfast import get_current_identity

logger = logging.getLogger("entitlements")

router = APIRouter(prefix="/api/subscription", tags=["subscription"])


def _fallback_subscription(user_id: str) -> CurrentSubscriptionResponse:
    now = datetime.now(timezone.utc)
    record = EntitlementRecord(
        user_id=user_id,
        tier=Tier.FREE,
        status=SubscriptionStatus.ACTIVE,
        created_at=now,
        updated_at=now,
    )
    return CurrentSubscriptionResponse(
        subscription=SubscriptionSnapshot.from_record(record),
        fallback=True,
        warnings=[SUBSCRIPTION_FALLBACK_WARNING],
    )


@router.get("/current", response_model=CurrentSubscriptionResponse)
def get_current_subscription(
    authorization: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    uid: Optional[str] = Query(None),
) -> CurrentSubscriptionResponse:
    try:
        identity = authenticate(authorization)
    except UnauthorizedError as exc:
        fallback_uid = (x_user_id or uid or "").strip()
        if not fallback_uid:
            raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
        logger.warning("Serving fallback subscription for unauthenticated user=%s: %s", fallback_uid, exc.message)
        return _fallback_subscription(fallback_uid)

    service = get_entitlement_query_service()
    resolution = service.get_tier(identity.uid, email=identity.email)
    if resolution.fallback:
        return _fallback_subscription(identity.uid).model_copy(update={"source": resolution.source.value})

    try:
        record = service.get_record(identity.uid)
    except StoreError as exc:
        logger.warning("Entitlement record unavailable user=%s: %s", identity.uid, exc)
        return _fallback_subscription(identity.uid)
    return CurrentSubscriptionResponse(
        subscription=SubscriptionSnapshot.from_record(record, tier=resolution.tier),
        source=resolution.source.value,
    )


@router.get("/features/{feature}", response_model=FeatureAccessResponse)
def check_feature_access(
    feature: str,
    *,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
) -> FeatureAccessResponse:
    resolution = get_entitlement_query_service().get_tier(identity.uid, email=identity.email)
    return FeatureAccessResponse.from_context(feature, EntitlementContext(resolution))


@router.get("/transactions", response_model=TransactionListResponse)
def list_transactions(
    limit: int = Query(20, ge=1, le=100),
    *,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
) -> TransactionListResponse:
    try:
        records = get_reconciliation_service().list_transactions(identity.uid, limit=limit)
    except StoreError as exc:
        logger.warning("Failed to list transactions user=%s: %s", identity.uid, exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Transactions unavailable") from exc
    return TransactionListResponse(transactions=[TransactionOut.from_record(record) for record in records])


__all__ = ["router"]
