"""Billing domain package handling PayFast payments and reconciliation."""

from .checkout import CheckoutForm, build_checkout
from .config import PayFastConfig, load_payfast_config
from .exceptions import (
    AdminPermissionsMissing,
    InvalidCorrelation,
    MalformedPayload,
    PersistenceFailure,
    ReconciliationError,
    ScopeViolation,
    SignatureMismatch,
)
from .models import (
    PAYMENT_STATUS_COMPLETE,
    SUBSCRIPTION_PAYMENT_KIND,
    PaymentEvent,
    ReconciliationOutcome,
    ReconciliationResult,
    TransactionRecord,
    TransactionStatus,
)
from .parser import parse_notification
from .repository import PostgresTransactionLedger, TransactionLedger
from .service import ReconciliationService
from .signature import generate_signature, is_valid_signature, verify_signature
from .writers import EntitlementWriter, PrivilegedEntitlementWriter, SelfServiceEntitlementWriter

__all__ = [
    "AdminPermissionsMissing",
    "CheckoutForm",
    "EntitlementWriter",
    "InvalidCorrelation",
    "MalformedPayload",
    "PAYMENT_STATUS_COMPLETE",
    "PayFastConfig",
    "PaymentEvent",
    "PersistenceFailure",
    "PostgresTransactionLedger",
    "PrivilegedEntitlementWriter",
    "ReconciliationError",
    "ReconciliationOutcome",
    "ReconciliationResult",
    "ReconciliationService",
    "SUBSCRIPTION_PAYMENT_KIND",
    "ScopeViolation",
    "SelfServiceEntitlementWriter",
    "SignatureMismatch",
    "TransactionLedger",
    "TransactionRecord",
    "TransactionStatus",
    "build_checkout",
    "generate_signature",
    "is_valid_signature",
    "load_payfast_config",
    "parse_notification",
    "verify_signature",
]
