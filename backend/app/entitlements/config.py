"""Entitlement configuration helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import FrozenSet, Mapping, Optional


@dataclass(frozen=True)
class EntitlementConfig:
    """Read-only configuration for entitlement resolution."""

    admin_emails: FrozenSet[str]
    store_timeout_seconds: float

    def is_admin_email(self, email: Optional[str]) -> bool:
        if not email:
            return False
        return email.strip().lower() in self.admin_emails


def _parse_emails(raw: Optional[str]) -> FrozenSet[str]:
    if not raw:
        return frozenset()
    return frozenset(part.strip().lower() for part in raw.split(",") if part.strip())


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def load_entitlement_config(env: Optional[Mapping[str, str]] = None) -> EntitlementConfig:
    """Load :class:`EntitlementConfig` from environment variables."""

    env_mapping = os.environ if env is None else env
    return EntitlementConfig(
        admin_emails=_parse_emails(env_mapping.get("ENTITLEMENT_ADMIN_EMAILS")),
        store_timeout_seconds=max(0.5, _to_float(env_mapping.get("STORE_TIMEOUT_SECONDS"), default=5.0)),
    )
