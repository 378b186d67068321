"""Write strategies used by the reconciliation engine.

Both strategies expose the same interface so the state machine in
:mod:`.service` stays a single implementation; only the credentials behind
the store differ.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from ..entitlements.exceptions import StoreError
from ..entitlements.models import EntitlementRecord, EntitlementUpdate
from ..entitlements.repository import EntitlementStore
from .exceptions import ScopeViolation

logger = logging.getLogger("billing")


class EntitlementWriter(Protocol):
    """Persists entitlement changes on behalf of the reconciliation engine."""

    name: str

    def probe(self) -> bool:
        """Return whether the writer currently holds write capability."""

    def get(self, user_id: str) -> Optional[EntitlementRecord]:
        ...

    def merge(self, user_id: str, update: EntitlementUpdate) -> EntitlementRecord:
        ...


class PrivilegedEntitlementWriter:
    """Writes with the server's own database role."""

    name = "privileged"

    def __init__(self, store: EntitlementStore) -> None:
        self._store = store

    def probe(self) -> bool:
        try:
            return self._store.has_write_privilege()
        except StoreError as exc:
            logger.warning("Privilege probe failed: %s", exc)
            return False

    def get(self, user_id: str) -> Optional[EntitlementRecord]:
        return self._store.get(user_id)

    def merge(self, user_id: str, update: EntitlementUpdate) -> EntitlementRecord:
        return self._store.merge(user_id, update)


class SelfServiceEntitlementWriter:
    """Writes with the caller's own identity; limited to the caller's record."""

    name = "self_service"

    def __init__(self, store: EntitlementStore, *, acting_user_id: str) -> None:
        self._store = store
        self._acting_user_id = acting_user_id

    def _check_scope(self, user_id: str) -> None:
        if user_id != self._acting_user_id:
            raise ScopeViolation(
                "Self-service writes are limited to the caller's own record",
                user_id=user_id,
            )

    def probe(self) -> bool:
        return True

    def get(self, user_id: str) -> Optional[EntitlementRecord]:
        self._check_scope(user_id)
        return self._store.get(user_id)

    def merge(self, user_id: str, update: EntitlementUpdate) -> EntitlementRecord:
        self._check_scope(user_id)
        return self._store.merge(user_id, update)


__all__ = [
    "EntitlementWriter",
    "PrivilegedEntitlementWriter",
    "SelfServiceEntitlementWriter",
]
