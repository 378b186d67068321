"""Persistence layer for entitlement records."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol

import psycopg2
import psycopg2.errors
import psycopg2.extras
from psycopg2 import sql
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...app_context import get_conn
from .catalog import normalize_tier
from .exceptions import StoreError, StorePermissionDenied, StoreUnavailable
from .models import EntitlementRecord, EntitlementUpdate, SubscriptionStatus, Tier

logger = logging.getLogger("entitlements")

_MERGEABLE_COLUMNS = (
    "tier",
    "status",
    "payment_token",
    "trial_ends_at",
    "next_billing_date",
    "updated_at",
)

_PERMISSION_DENIED_SQLSTATE = "42501"


class EntitlementStore(Protocol):
    """Key-value access to entitlement records keyed by user id."""

    def get(self, user_id: str) -> Optional[EntitlementRecord]:
        ...

    def get_or_create(self, user_id: str) -> EntitlementRecord:
        ...

    def merge(self, user_id: str, update: EntitlementUpdate) -> EntitlementRecord:
        ...

    def has_write_privilege(self) -> bool:
        ...


def translate_store_error(exc: Exception, *, user_id: Optional[str] = None) -> StoreError:
    """Map a driver exception onto the store error taxonomy."""

    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, psycopg2.errors.InsufficientPrivilege) or (
        getattr(exc, "pgcode", None) == _PERMISSION_DENIED_SQLSTATE
    ):
        return StorePermissionDenied(f"Insufficient privilege: {exc}", user_id=user_id)
    if isinstance(exc, (psycopg2.OperationalError, psycopg2.errors.QueryCanceled, TimeoutError)):
        return StoreUnavailable(f"Entitlement store unavailable: {exc}", user_id=user_id)
    return StoreError(f"Entitlement store failure: {exc}", user_id=user_id)


@contextmanager
def managed_connection(
    conn: Optional[PgConnection] = None,
    connection_factory: Optional[Callable[[], PgConnection]] = None,
):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = (connection_factory or get_conn)()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


def _row_to_record(row: dict) -> EntitlementRecord:
    return EntitlementRecord(
        user_id=row["user_id"],
        tier=normalize_tier(row["tier"]),
        status=SubscriptionStatus(row["status"]),
        payment_token=row.get("payment_token"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        trial_ends_at=row.get("trial_ends_at"),
        next_billing_date=row.get("next_billing_date"),
    )


def _db_value(value: object) -> object:
    return value.value if isinstance(value, Enum) else value


class PostgresEntitlementStore:
    """Entitlement records stored in the ``entitlements`` table.

    When ``acting_user_id`` is given every transaction first binds the
    ``app.current_user_id`` setting, which the row-level security policy of the
    self-service role uses to restrict writes to that single row.
    """

    def __init__(
        self,
        *,
        conn: Optional[PgConnection] = None,
        connection_factory: Optional[Callable[[], PgConnection]] = None,
        acting_user_id: Optional[str] = None,
        statement_timeout_ms: int = 5000,
    ) -> None:
        self._conn = conn
        self._connection_factory = connection_factory
        self._acting_user_id = acting_user_id
        self._statement_timeout_ms = statement_timeout_ms

    @contextmanager
    def _cursor(self, *, user_id: Optional[str] = None) -> Iterable[PgCursor]:
        try:
            with managed_connection(self._conn, self._connection_factory) as (connection, _managed):
                cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
                try:
                    cursor.execute("SET LOCAL statement_timeout = %s", (self._statement_timeout_ms,))
                    if self._acting_user_id is not None:
                        cursor.execute(
                            "SELECT set_config('app.current_user_id', %s, true)",
                            (self._acting_user_id,),
                        )
                    yield cursor
                finally:
                    cursor.close()
        except psycopg2.Error as exc:
            raise translate_store_error(exc, user_id=user_id) from exc

    def get(self, user_id: str) -> Optional[EntitlementRecord]:
        with self._cursor(user_id=user_id) as cursor:
            cursor.execute(
                """
                SELECT *
                FROM entitlements
                WHERE user_id = %s
                LIMIT 1
                """,
                (user_id,),
            )
            row = cursor.fetchone()
            return _row_to_record(row) if row else None

    def get_or_create(self, user_id: str) -> EntitlementRecord:
        """Return the record, creating the default free/active one on first sight."""

        with self._cursor(user_id=user_id) as cursor:
            cursor.execute(
                """
                INSERT INTO entitlements (user_id, tier, status)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id) DO NOTHING
                """,
                (user_id, Tier.FREE.value, SubscriptionStatus.ACTIVE.value),
            )
            cursor.execute(
                "SELECT * FROM entitlements WHERE user_id = %s LIMIT 1",
                (user_id,),
            )
            row = cursor.fetchone()
            if not row:
                raise StoreError("Failed to create entitlement record", user_id=user_id)
            return _row_to_record(row)

    def merge(self, user_id: str, update: EntitlementUpdate) -> EntitlementRecord:
        """Upsert the provided fields, preserving every column not mentioned."""

        changes = {
            column: _db_value(value)
            for column, value in update.changes().items()
            if column in _MERGEABLE_COLUMNS
        }
        columns = list(changes)
        insert_columns = ["user_id", "created_at", *columns]
        params = {"user_id": user_id, "created_at": changes["updated_at"], **changes}

        query = sql.SQL(
            """
            INSERT INTO entitlements ({insert_columns})
            VALUES ({placeholders})
            ON CONFLICT (user_id) DO UPDATE SET {assignments}
            RETURNING *
            """
        ).format(
            insert_columns=sql.SQL(", ").join(sql.Identifier(column) for column in insert_columns),
            placeholders=sql.SQL(", ").join(sql.Placeholder(column) for column in insert_columns),
            assignments=sql.SQL(", ").join(
                sql.SQL("{column} = EXCLUDED.{column}").format(column=sql.Identifier(column))
                for column in columns
            ),
        )

        with self._cursor(user_id=user_id) as cursor:
            cursor.execute(query, params)
            row = cursor.fetchone()
            if not row:
                # Row-level security filters the RETURNING row when the write was refused.
                raise StorePermissionDenied("Entitlement write was not permitted", user_id=user_id)
            return _row_to_record(row)

    def has_write_privilege(self) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT has_table_privilege(current_user, 'entitlements', 'INSERT')
                   AND has_table_privilege(current_user, 'entitlements', 'UPDATE') AS allowed
                """
            )
            row = cursor.fetchone()
            return bool(row and row["allowed"])


__all__ = [
    "EntitlementStore",
    "PostgresEntitlementStore",
    "managed_connection",
    "translate_store_error",
]
