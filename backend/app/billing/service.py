"""Reconciliation of gateway payments into durable entitlement changes."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence, Tuple, Union

from ..entitlements.catalog import is_paid_tier, parse_tier, rank
from ..entitlements.exceptions import StoreError, StorePermissionDenied
from ..entitlements.models import EntitlementUpdate, SubscriptionStatus, Tier
from .config import PayFastConfig
from .exceptions import (
    AdminPermissionsMissing,
    InvalidCorrelation,
    PersistenceFailure,
    SignatureMismatch,
)
from .models import PaymentEvent, ReconciliationOutcome, ReconciliationResult, TransactionRecord
from .parser import parse_notification
from .repository import TransactionLedger
from .signature import verify_signature
from .writers import EntitlementWriter

logger = logging.getLogger("billing")

VERIFICATION_MISMATCH_WARNING = "verification_mismatch_after_write"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReconciliationService:
    """State machine mapping verified payments onto entitlement records.

    Every entry point funnels into :meth:`_apply`, which merges
    ``{tier, status=active, payment_token, updated_at}`` through whichever
    :class:`EntitlementWriter` the caller selected and re-reads the record to
    confirm the write landed.
    """

    privileged_writer: EntitlementWriter
    ledger: TransactionLedger
    config: PayFastConfig
    self_writer_factory: Callable[[str], EntitlementWriter]
    clock: Callable[[], datetime] = field(default=_utcnow)

    def process_notification(self, body: Union[bytes, str]) -> ReconciliationResult:
        """Parse, verify and reconcile one webhook delivery."""

        event = parse_notification(body)
        try:
            verify_signature(
                event.raw_fields,
                self.config.passphrase,
                user_id=event.correlation_user_id,
                payment_id=event.payment_id,
            )
        except SignatureMismatch:
            logger.warning(
                "Rejected unverified notification user=%s payment=%s merchant_payment=%s",
                event.correlation_user_id,
                event.payment_id,
                event.merchant_payment_id,
            )
            raise
        return self.reconcile_event(event)

    def reconcile_event(self, event: PaymentEvent) -> ReconciliationResult:
        """Apply a verified event. Safe to repeat for the same ``payment_id``."""

        if not event.is_successful(self.config.success_status):
            logger.info(
                "Payment not successful status=%s user=%s payment=%s",
                event.status,
                event.correlation_user_id,
                event.payment_id,
            )
            return ReconciliationResult(
                outcome=ReconciliationOutcome.UNCHANGED,
                user_id=event.correlation_user_id,
                payment_id=event.payment_id,
            )

        user_id, tier, payment_id = self._validate_correlation(event)

        if self._already_recorded(user_id, payment_id):
            logger.info("Payment already recorded; skipping entitlement write user=%s payment=%s", user_id, payment_id)
            return ReconciliationResult(
                outcome=ReconciliationOutcome.UNCHANGED,
                user_id=user_id,
                payment_id=payment_id,
                tier=tier,
                ledger_recorded=False,
            )

        try:
            result = self._apply(self.privileged_writer, user_id=user_id, tier=tier, payment_token=payment_id)
        except StorePermissionDenied as exc:
            logger.error(
                "Privileged entitlement write denied on webhook path user=%s payment=%s: %s",
                user_id,
                payment_id,
                exc,
            )
            raise PersistenceFailure(
                "Subscription update failed (store permission denied)",
                user_id=user_id,
                payment_id=payment_id,
            ) from exc
        except StoreError as exc:
            logger.error(
                "Entitlement write failed user=%s payment=%s: %s",
                user_id,
                payment_id,
                exc,
            )
            raise PersistenceFailure(
                "Subscription update failed",
                retryable=exc.retryable,
                user_id=user_id,
                payment_id=payment_id,
            ) from exc

        recorded = self._record_transaction(event, user_id=user_id, tier=tier, payment_id=payment_id)
        return result.model_copy(update={"ledger_recorded": recorded})

    def apply_manual_update(
        self,
        *,
        user_id: str,
        requested_tier: str,
        payment_id: Optional[str] = None,
    ) -> ReconciliationResult:
        """Client-initiated update through the privileged writer.

        Raises :class:`AdminPermissionsMissing` when the server lacks write
        privilege so the caller can switch to its self-service fallback.
        """

        tier = self._parse_assignable_tier(requested_tier, user_id=user_id, payment_id=payment_id)

        if not self.privileged_writer.probe():
            self._raise_fallback_required(user_id, tier, payment_id, reason="privilege probe failed")

        try:
            return self._apply(self.privileged_writer, user_id=user_id, tier=tier, payment_token=payment_id)
        except StorePermissionDenied:
            self._raise_fallback_required(user_id, tier, payment_id, reason="write denied")
        except StoreError as exc:
            logger.error(
                "Manual entitlement update failed user=%s payment=%s: %s",
                user_id,
                payment_id,
                exc,
            )
            raise PersistenceFailure(
                "Manual update failed",
                retryable=exc.retryable,
                user_id=user_id,
                payment_id=payment_id,
            ) from exc

    def apply_self_service_fallback(
        self,
        *,
        acting_user_id: str,
        user_id: str,
        requested_tier: str,
        payment_id: Optional[str] = None,
    ) -> ReconciliationResult:
        """Last-resort write performed with the caller's own identity."""

        tier = self._parse_assignable_tier(requested_tier, user_id=user_id, payment_id=payment_id)
        writer = self.self_writer_factory(acting_user_id)
        logger.warning(
            "Self-service fallback write fired user=%s tier=%s payment=%s; privileged credentials are missing",
            user_id,
            tier.value,
            payment_id,
        )
        try:
            return self._apply(writer, user_id=user_id, tier=tier, payment_token=payment_id)
        except StoreError as exc:
            logger.error(
                "Self-service fallback write failed user=%s payment=%s: %s",
                user_id,
                payment_id,
                exc,
            )
            raise PersistenceFailure(
                "Fallback update failed",
                retryable=exc.retryable,
                user_id=user_id,
                payment_id=payment_id,
            ) from exc

    def list_transactions(self, user_id: str, *, limit: int = 20) -> Sequence[TransactionRecord]:
        return self.ledger.list_for_user(user_id, limit=limit)

    def _apply(
        self,
        writer: EntitlementWriter,
        *,
        user_id: str,
        tier: Tier,
        payment_token: Optional[str],
    ) -> ReconciliationResult:
        previous = writer.get(user_id)
        previous_tier = previous.tier if previous is not None and previous.is_active else Tier.FREE

        if (
            previous is not None
            and previous.is_active
            and previous.tier == tier
            and (payment_token is None or previous.payment_token == payment_token)
        ):
            logger.info(
                "Entitlement already applied user=%s tier=%s payment=%s",
                user_id,
                tier.value,
                payment_token,
            )
            return ReconciliationResult(
                outcome=ReconciliationOutcome.UNCHANGED,
                user_id=user_id,
                payment_id=payment_token,
                tier=tier,
                previous_tier=previous_tier,
                status=previous.status,
                writer=writer.name,
            )

        writer.merge(
            user_id,
            EntitlementUpdate(
                tier=tier,
                status=SubscriptionStatus.ACTIVE,
                payment_token=payment_token,
                updated_at=self.clock(),
            ),
        )

        warnings = []
        verified = self._verify_persisted(writer, user_id=user_id, tier=tier, payment_token=payment_token)
        if not verified:
            warnings.append(VERIFICATION_MISMATCH_WARNING)

        if rank(tier) > rank(previous_tier):
            outcome = ReconciliationOutcome.UPGRADED
        elif rank(tier) < rank(previous_tier):
            outcome = ReconciliationOutcome.DOWNGRADED
        else:
            outcome = ReconciliationOutcome.UNCHANGED

        logger.info(
            "Entitlement %s user=%s tier=%s previous=%s payment=%s writer=%s",
            outcome.value,
            user_id,
            tier.value,
            previous_tier.value,
            payment_token,
            writer.name,
        )
        return ReconciliationResult(
            outcome=outcome,
            user_id=user_id,
            payment_id=payment_token,
            tier=tier,
            previous_tier=previous_tier,
            status=SubscriptionStatus.ACTIVE,
            writer=writer.name,
            verified=verified,
            warnings=warnings,
        )

    def _verify_persisted(
        self,
        writer: EntitlementWriter,
        *,
        user_id: str,
        tier: Tier,
        payment_token: Optional[str],
    ) -> bool:
        try:
            persisted = writer.get(user_id)
        except StoreError as exc:
            logger.warning(
                "Could not re-read entitlement after write user=%s payment=%s: %s",
                user_id,
                payment_token,
                exc,
            )
            return False

        actual = persisted.tier.value if persisted is not None else None
        if actual != tier.value:
            logger.warning(
                "Entitlement verification mismatch after write user=%s payment=%s expected=%s actual=%s",
                user_id,
                payment_token,
                tier.value,
                actual,
            )
            return False
        return True

    def _already_recorded(self, user_id: str, payment_id: str) -> bool:
        try:
            return self.ledger.contains(payment_id)
        except StoreError as exc:
            logger.error("Ledger lookup failed user=%s payment=%s: %s", user_id, payment_id, exc)
            raise PersistenceFailure(
                "Transaction log lookup failed",
                retryable=exc.retryable,
                user_id=user_id,
                payment_id=payment_id,
            ) from exc

    def _record_transaction(self, event: PaymentEvent, *, user_id: str, tier: Tier, payment_id: str) -> bool:
        now = self.clock()
        record = TransactionRecord(
            user_id=user_id,
            tier=tier,
            gateway_payment_id=payment_id,
            merchant_payment_id=event.merchant_payment_id,
            amount_gross=event.gross_amount,
            amount_fee=event.fee_amount,
            amount_net=event.net_amount,
            customer_email=event.email_address,
            customer_name=event.customer_name,
            created_at=now,
            completed_at=now,
        )
        try:
            recorded = self.ledger.append(record)
        except StoreError as exc:
            logger.error(
                "Failed to append transaction user=%s payment=%s: %s",
                user_id,
                payment_id,
                exc,
            )
            raise PersistenceFailure(
                "Transaction log update failed",
                retryable=exc.retryable,
                user_id=user_id,
                payment_id=payment_id,
            ) from exc

        if not recorded:
            logger.info("Duplicate delivery ignored by ledger user=%s payment=%s", user_id, payment_id)
        return recorded

    def _validate_correlation(self, event: PaymentEvent) -> Tuple[str, Tier, str]:
        user_id = (event.correlation_user_id or "").strip()
        if not user_id or event.correlation_kind != self.config.payment_kind:
            logger.warning(
                "Invalid correlation data user=%s kind=%s payment=%s",
                event.correlation_user_id,
                event.correlation_kind,
                event.payment_id,
            )
            raise InvalidCorrelation(
                "Invalid webhook data - missing userId or wrong payment type",
                user_id=event.correlation_user_id,
                payment_id=event.payment_id,
            )

        try:
            tier = parse_tier(event.correlation_tier)
        except ValueError as exc:
            logger.warning("Unknown tier %r user=%s payment=%s", event.correlation_tier, user_id, event.payment_id)
            raise InvalidCorrelation(
                "Invalid subscription tier",
                user_id=user_id,
                payment_id=event.payment_id,
            ) from exc
        if not is_paid_tier(tier):
            logger.warning("Tier %s is not purchasable user=%s payment=%s", tier.value, user_id, event.payment_id)
            raise InvalidCorrelation(
                "Invalid subscription tier",
                user_id=user_id,
                payment_id=event.payment_id,
            )

        if not event.payment_id:
            raise InvalidCorrelation("Missing pf_payment_id", user_id=user_id)
        return user_id, tier, event.payment_id

    def _parse_assignable_tier(self, value: str, *, user_id: str, payment_id: Optional[str]) -> Tier:
        try:
            tier = parse_tier(value)
        except ValueError as exc:
            raise InvalidCorrelation("Invalid subscription tier", user_id=user_id, payment_id=payment_id) from exc
        if tier == Tier.ADMIN:
            raise InvalidCorrelation(
                "Admin tier cannot be assigned through reconciliation",
                user_id=user_id,
                payment_id=payment_id,
            )
        return tier

    def _raise_fallback_required(
        self,
        user_id: str,
        tier: Tier,
        payment_id: Optional[str],
        *,
        reason: str,
    ) -> None:
        logger.warning(
            "Privileged entitlement write unavailable (%s) user=%s tier=%s payment=%s; "
            "client fallback required",
            reason,
            user_id,
            tier.value,
            payment_id,
        )
        raise AdminPermissionsMissing(
            "Manual update failed (admin permissions missing).",
            user_id=user_id,
            payment_id=payment_id,
            detail={"details": "Client fallback write required (admin credentials not configured)."},
        )


__all__ = ["ReconciliationService", "VERIFICATION_MISMATCH_WARNING"]
