"""Shared application context for reusable dependencies."""
from __future__ import annotations

from typing import Any, Callable, Optional

_get_conn: Optional[Callable[[], Any]] = None
_get_self_service_conn: Optional[Callable[[], Any]] = None
_identity_verifier: Optional[Any] = None


def configure(
    *,
    get_conn: Callable[[], Any],
    get_self_service_conn: Callable[[], Any],
    identity_verifier: Any,
) -> None:
    """Register application-wide dependencies required by modular routers."""

    global _get_conn
    global _get_self_service_conn
    global _identity_verifier

    _get_conn = get_conn
    _get_self_service_conn = get_self_service_conn
    _identity_verifier = identity_verifier


def _require(value: Optional[Any], name: str) -> Any:
    if value is None:
        raise RuntimeError(f"Application context has not been configured yet: {name}")
    return value


def get_conn() -> Any:
    """Open a connection with the privileged (server) database role."""

    conn_factory = _require(_get_conn, "get_conn")
    return conn_factory()


def get_self_service_conn() -> Any:
    """Open a connection with the row-level-security restricted role."""

    conn_factory = _require(_get_self_service_conn, "get_self_service_conn")
    return conn_factory()


def get_identity_verifier() -> Any:
    return _require(_identity_verifier, "identity_verifier")
