"""Errors raised while parsing, verifying and reconciling payments."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status

from .models import ReconciliationOutcome


class ReconciliationError(Exception):
    """Represents a reconciliation failure surfaced to the caller."""

    code: str = "reconciliation_failed"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    outcome: ReconciliationOutcome = ReconciliationOutcome.PERSIST_FAILED_FATAL
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        user_id: Optional[str] = None,
        payment_id: Optional[str] = None,
        detail: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.payment_id = payment_id
        self.detail = dict(detail or {})

    @property
    def payload(self) -> Dict[str, Any]:
        """Serialized representation suitable for JSON responses."""

        body: Dict[str, Any] = {
            "error": self.message,
            "code": self.code,
            "outcome": self.outcome.value,
        }
        if self.user_id:
            body["userId"] = self.user_id
        if self.payment_id:
            body["paymentId"] = self.payment_id
        if self.retryable:
            body["retryable"] = True
        body.update(self.detail)
        return body

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.payload)


class MalformedPayload(ReconciliationError):
    code = "malformed_payload"
    status_code = status.HTTP_400_BAD_REQUEST
    outcome = ReconciliationOutcome.REJECTED_INVALID


class SignatureMismatch(ReconciliationError):
    code = "signature_mismatch"
    status_code = status.HTTP_400_BAD_REQUEST
    outcome = ReconciliationOutcome.REJECTED_UNVERIFIED


class InvalidCorrelation(ReconciliationError):
    code = "invalid_correlation"
    status_code = status.HTTP_400_BAD_REQUEST
    outcome = ReconciliationOutcome.REJECTED_INVALID


class AdminPermissionsMissing(ReconciliationError):
    """The privileged writer cannot persist; the caller may use its fallback write."""

    code = "admin_permissions_missing"
    status_code = status.HTTP_409_CONFLICT
    outcome = ReconciliationOutcome.PERSIST_FAILED_FALLBACK


class ScopeViolation(ReconciliationError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    outcome = ReconciliationOutcome.REJECTED_INVALID


class PersistenceFailure(ReconciliationError):
    code = "persistence_failed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    outcome = ReconciliationOutcome.PERSIST_FAILED_FATAL

    def __init__(self, message: str, *, retryable: bool = False, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.retryable = retryable
        if retryable:
            self.code = "store_unavailable"
            self.status_code = status.HTTP_503_SERVICE_UNAVAILABLE


__all__ = [
    "AdminPermissionsMissing",
    "InvalidCorrelation",
    "MalformedPayload",
    "PersistenceFailure",
    "ReconciliationError",
    "ScopeViolation",
    "SignatureMismatch",
]
