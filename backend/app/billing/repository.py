"""Persistence layer for the append-only transaction ledger."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Optional, Protocol, Sequence

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ..entitlements.models import Tier
from ..entitlements.repository import managed_connection, translate_store_error
from .models import TransactionRecord, TransactionStatus


class TransactionLedger(Protocol):
    """Append-only log of successful gateway payments."""

    def append(self, record: TransactionRecord) -> bool:
        """Insert ``record`` unless its gateway payment id was already logged."""

    def contains(self, gateway_payment_id: str) -> bool:
        """Return whether a payment with this gateway id was already logged."""

    def list_for_user(self, user_id: str, *, limit: int = 20) -> Sequence[TransactionRecord]:
        ...


def _row_to_transaction(row: dict) -> TransactionRecord:
    return TransactionRecord(
        transaction_id=row["transaction_id"],
        user_id=row["user_id"],
        tier=Tier(row["tier"]),
        gateway_payment_id=row["gateway_payment_id"],
        merchant_payment_id=row.get("merchant_payment_id"),
        amount_gross=row.get("amount_gross"),
        amount_fee=row.get("amount_fee"),
        amount_net=row.get("amount_net"),
        status=TransactionStatus(row["status"]),
        customer_email=row.get("customer_email"),
        customer_name=row.get("customer_name"),
        created_at=row["created_at"],
        completed_at=row["completed_at"],
    )


class PostgresTransactionLedger:
    """Ledger stored in ``billing_transactions`` with a unique gateway payment id."""

    def __init__(self, *, conn: Optional[PgConnection] = None, statement_timeout_ms: int = 5000) -> None:
        self._conn = conn
        self._statement_timeout_ms = statement_timeout_ms

    @contextmanager
    def _cursor(self) -> Iterable[PgCursor]:
        try:
            with managed_connection(self._conn) as (connection, _managed):
                cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
                try:
                    cursor.execute("SET LOCAL statement_timeout = %s", (self._statement_timeout_ms,))
                    yield cursor
                finally:
                    cursor.close()
        except psycopg2.Error as exc:
            raise translate_store_error(exc) from exc

    def append(self, record: TransactionRecord) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO billing_transactions (
                    user_id,
                    tier,
                    gateway_payment_id,
                    merchant_payment_id,
                    amount_gross,
                    amount_fee,
                    amount_net,
                    status,
                    customer_email,
                    customer_name,
                    created_at,
                    completed_at
                )
                VALUES (%(user_id)s, %(tier)s, %(gateway_payment_id)s, %(merchant_payment_id)s,
                        %(amount_gross)s, %(amount_fee)s, %(amount_net)s, %(status)s,
                        %(customer_email)s, %(customer_name)s, %(created_at)s, %(completed_at)s)
                ON CONFLICT (gateway_payment_id) DO NOTHING
                """,
                {
                    "user_id": record.user_id,
                    "tier": record.tier.value,
                    "gateway_payment_id": record.gateway_payment_id,
                    "merchant_payment_id": record.merchant_payment_id,
                    "amount_gross": record.amount_gross,
                    "amount_fee": record.amount_fee,
                    "amount_net": record.amount_net,
                    "status": record.status.value,
                    "customer_email": record.customer_email,
                    "customer_name": record.customer_name,
                    "created_at": record.created_at,
                    "completed_at": record.completed_at,
                },
            )
            return cursor.rowcount > 0

    def contains(self, gateway_payment_id: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT 1 FROM billing_transactions WHERE gateway_payment_id = %s",
                (gateway_payment_id,),
            )
            return cursor.fetchone() is not None

    def list_for_user(self, user_id: str, *, limit: int = 20) -> list[TransactionRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM billing_transactions
                WHERE user_id = %s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (user_id, limit),
            )
            rows = cursor.fetchall() or []
            return [_row_to_transaction(row) for row in rows]


__all__ = ["PostgresTransactionLedger", "TransactionLedger"]
