"""API routes for the PayFast checkout and payment notifications."""
from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from ..billing import ReconciliationError, ScopeViolation, build_checkout
from ..entitlements import Tier
from ..entitlements.catalog import parse_tier
from ..feature_gates import EntitlementContext
from ..schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    ManualUpdateRequest,
    ReconciliationResponse,
)
from ..services.billing import (
    get_entitlement_query_service,
    get_payfast_config,
    get_reconciliation_service,
)
from ..services.identity import AuthenticatedIdentity, UnauthorizedError, authenticate

logger = logging.getLogger("billing")

router = APIRouter(prefix="/api/payfast", tags=["payfast"])


def get_current_identity(authorization: Optional[str] = Header(None)) -> AuthenticatedIdentity:
    try:
        return authenticate(authorization)
    except UnauthorizedError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


def _error_response(exc: ReconciliationError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, **exc.payload})


def handle_notification(body: bytes) -> Union[PlainTextResponse, JSONResponse]:
    """Reconcile one notification body and build the gateway response."""

    service = get_reconciliation_service()
    try:
        result = service.process_notification(body)
    except ReconciliationError as exc:
        return _error_response(exc)
    except Exception:
        logger.exception("Unexpected failure while processing payment notification")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Webhook processing failed", "code": "internal_error"},
        )

    logger.info(
        "Notification processed outcome=%s user=%s payment=%s",
        result.outcome.value,
        result.user_id,
        result.payment_id,
    )
    return PlainTextResponse("SUCCESS", status_code=status.HTTP_200_OK)


@router.post("/webhook")
async def payfast_webhook(request: Request):
    return await run_in_threadpool(handle_notification, await request.body())


@router.post("/notify")
async def payfast_notify(request: Request):
    return await run_in_threadpool(handle_notification, await request.body())


@router.post("/subscribe", response_model=CheckoutResponse)
def create_subscription_checkout(
    payload: CheckoutRequest,
    *,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
) -> CheckoutResponse:
    try:
        tier = parse_tier(payload.tier)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid subscription tier") from exc

    try:
        form = build_checkout(
            get_payfast_config(),
            user_id=identity.uid,
            tier=tier,
            name_first=payload.name_first,
            name_last=payload.name_last,
            email_address=payload.email or identity.email,
        )
    except ReconciliationError as exc:
        raise exc.to_http_exception() from exc
    return CheckoutResponse.from_form(form)


def _ensure_may_update(identity: AuthenticatedIdentity, payload: ManualUpdateRequest) -> None:
    if identity.uid == payload.user_id:
        return
    resolution = get_entitlement_query_service().get_tier(identity.uid, email=identity.email)
    if not EntitlementContext(resolution).has_at_least(Tier.ADMIN):
        raise ScopeViolation(
            "Cannot update another user's subscription",
            user_id=payload.user_id,
            payment_id=payload.payment_id,
        )


@router.post("/manual-update", response_model=ReconciliationResponse)
def manual_update(
    payload: ManualUpdateRequest,
    *,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
):
    try:
        _ensure_may_update(identity, payload)
        result = get_reconciliation_service().apply_manual_update(
            user_id=payload.user_id,
            requested_tier=payload.requested_tier,
            payment_id=payload.payment_id,
        )
    except ReconciliationError as exc:
        return _error_response(exc)
    return ReconciliationResponse.from_result(result, message="Subscription updated")


@router.post("/manual-update/fallback", response_model=ReconciliationResponse)
def manual_update_fallback(
    payload: ManualUpdateRequest,
    *,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
):
    try:
        result = get_reconciliation_service().apply_self_service_fallback(
            acting_user_id=identity.uid,
            user_id=payload.user_id,
            requested_tier=payload.requested_tier,
            payment_id=payload.payment_id,
        )
    except ReconciliationError as exc:
        return _error_response(exc)
    return ReconciliationResponse.from_result(result, message="Subscription updated via client fallback")


__all__ = ["get_current_identity", "handle_notification", "router"]
