"""Errors raised by entitlement persistence."""
from __future__ import annotations

from typing import Optional


class StoreError(Exception):
    """Base class for entitlement and ledger persistence failures."""

    retryable: bool = False

    def __init__(self, message: str, *, user_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_id = user_id


class StorePermissionDenied(StoreError):
    """The connection lacks privilege for the requested operation."""


class StoreUnavailable(StoreError):
    """The store timed out or could not be reached."""

    retryable = True
