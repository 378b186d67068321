"""Application wiring for the billing and entitlement services."""
from __future__ import annotations

import logging
from functools import lru_cache

from ...app_context import get_self_service_conn
from ..billing import (
    PayFastConfig,
    PostgresTransactionLedger,
    PrivilegedEntitlementWriter,
    ReconciliationService,
    SelfServiceEntitlementWriter,
    load_payfast_config,
)
from ..billing.writers import EntitlementWriter
from ..entitlements import (
    EntitlementConfig,
    EntitlementQueryService,
    PostgresEntitlementStore,
    load_entitlement_config,
)

logger = logging.getLogger("billing")


@lru_cache(maxsize=1)
def get_payfast_config() -> PayFastConfig:
    config = load_payfast_config()
    if not config.passphrase:
        logger.warning("PAYFAST_PASSPHRASE is not set; signatures are computed without a passphrase")
    return config


@lru_cache(maxsize=1)
def get_entitlement_config() -> EntitlementConfig:
    return load_entitlement_config()


def _statement_timeout_ms() -> int:
    return int(get_entitlement_config().store_timeout_seconds * 1000)


@lru_cache(maxsize=1)
def get_entitlement_store() -> PostgresEntitlementStore:
    return PostgresEntitlementStore(statement_timeout_ms=_statement_timeout_ms())


def build_self_service_writer(acting_user_id: str) -> EntitlementWriter:
    """Writer bound to the caller; the restricted role only reaches its own row."""

    store = PostgresEntitlementStore(
        connection_factory=get_self_service_conn,
        acting_user_id=acting_user_id,
        statement_timeout_ms=_statement_timeout_ms(),
    )
    return SelfServiceEntitlementWriter(store, acting_user_id=acting_user_id)


@lru_cache(maxsize=1)
def get_reconciliation_service() -> ReconciliationService:
    return ReconciliationService(
        privileged_writer=PrivilegedEntitlementWriter(get_entitlement_store()),
        ledger=PostgresTransactionLedger(statement_timeout_ms=_statement_timeout_ms()),
        config=get_payfast_config(),
        self_writer_factory=build_self_service_writer,
    )


@lru_cache(maxsize=1)
def get_entitlement_query_service() -> EntitlementQueryService:
    return EntitlementQueryService(get_entitlement_store(), get_entitlement_config())


__all__ = [
    "build_self_service_writer",
    "get_entitlement_config",
    "get_entitlement_query_service",
    "get_entitlement_store",
    "get_payfast_config",
    "get_reconciliation_service",
]
