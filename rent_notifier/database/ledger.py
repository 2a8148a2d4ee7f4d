"""Delivery history ledger.

Append-only log of delivery attempts with paginated, newest-first reads.
A record is appended once in PENDING and again, under the same id, once
its outcome is known: append is an upsert, so the later write wins.

Backends:
- PostgresDeliveryLedger: delivery_records table via the shared pool
- InMemoryDeliveryLedger: process-local, for development and tests

Author: Odiseo
Version: 1.0.0
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

import psycopg2.extensions

from rent_notifier.core.exceptions import ConfigurationInvalidError, InvalidTransitionError
from rent_notifier.core.logger import get_logger
from rent_notifier.database.connection import DatabasePool, with_db_retry
from rent_notifier.models.notification import DeliveryOutcome, DeliveryRecord, HistoryPage

logger = get_logger(__name__)

_COLUMNS = (
    "id",
    "recipient",
    "subject",
    "kind",
    "outcome",
    "error_detail",
    "error_category",
    "idempotency_key",
    "attempted_at",
)


def _check_page_size(page_size: int) -> None:
    if page_size < 1:
        raise ConfigurationInvalidError(f"page_size must be at least 1, got {page_size}", field="page_size")


def _check_overwrite(stored: DeliveryOutcome, record: DeliveryRecord) -> None:
    # SENT and FAILED records are final
    if stored.is_terminal and record.outcome != stored:
        raise InvalidTransitionError(
            f"Delivery record {record.id} is already {stored.value}, refusing {record.outcome.value}"
        )


class DeliveryLedger(ABC):
    """Interface shared by the ledger backends."""

    @abstractmethod
    def append(self, record: DeliveryRecord) -> None:
        """Insert the record, or replace the stored one with the same id.

        Raises:
            InvalidTransitionError: If the stored record is SENT or FAILED and
                the incoming copy carries a different outcome.
        """

    @abstractmethod
    def query(self, page: int = 1, page_size: int = 10) -> HistoryPage:
        """Return one page of records, newest first.

        Args:
            page: 1-based page number. Out-of-range pages are empty.
            page_size: Records per page (at least 1).

        Raises:
            ConfigurationInvalidError: If page_size is below 1.
        """

    @abstractmethod
    def find_sent(self, idempotency_key: str) -> DeliveryRecord | None:
        """Return a SENT record carrying the key, if any."""

    @abstractmethod
    def count(self) -> int:
        """Total number of records."""

    @abstractmethod
    def stats(self) -> dict[str, int]:
        """Record counts keyed by outcome."""

    def close(self) -> None:
        """Release backend resources."""


class InMemoryDeliveryLedger(DeliveryLedger):
    """Ledger kept in a dict guarded by a lock."""

    def __init__(self) -> None:
        self._records: dict[str, DeliveryRecord] = {}
        self._lock = threading.Lock()

    def append(self, record: DeliveryRecord) -> None:
        with self._lock:
            stored = self._records.get(record.id)
            if stored is not None:
                _check_overwrite(stored.outcome, record)
            self._records[record.id] = record.model_copy(deep=True)
        logger.debug(f"Ledger append #{record.id}: {record.outcome.value}")

    def query(self, page: int = 1, page_size: int = 10) -> HistoryPage:
        _check_page_size(page_size)
        with self._lock:
            ordered = sorted(self._records.values(), key=lambda r: r.attempted_at, reverse=True)

        total = len(ordered)
        if page < 1:
            return HistoryPage.build([], total, page_size)

        start = (page - 1) * page_size
        records = [r.model_copy(deep=True) for r in ordered[start : start + page_size]]
        return HistoryPage.build(records, total, page_size)

    def find_sent(self, idempotency_key: str) -> DeliveryRecord | None:
        with self._lock:
            for record in self._records.values():
                if record.idempotency_key == idempotency_key and record.outcome == DeliveryOutcome.SENT:
                    return record.model_copy(deep=True)
        return None

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def stats(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        with self._lock:
            for record in self._records.values():
                counts[record.outcome.value] = counts.get(record.outcome.value, 0) + 1
        return counts


class PostgresDeliveryLedger(DeliveryLedger):
    """Ledger stored in the delivery_records table.

    Attributes:
        db: Shared connection pool.
    """

    def __init__(self, db: DatabasePool) -> None:
        self.db = db
        self.table = f"{db.schema}.delivery_records"
        logger.info(f"Delivery ledger initialized: {self.table}")

    @with_db_retry(error_message="Failed to append delivery record")
    def append(self, conn: psycopg2.extensions.connection, record: DeliveryRecord) -> None:
        row = record.model_dump(mode="json")
        row["attempted_at"] = record.attempted_at
        placeholders = ", ".join(["%s"] * len(_COLUMNS))
        updates = ", ".join(f"{col} = EXCLUDED.{col}" for col in _COLUMNS if col != "id")

        with conn.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO {self.table} ({", ".join(_COLUMNS)})
                VALUES ({placeholders})
                ON CONFLICT (id) DO UPDATE SET {updates}
                WHERE {self.table}.outcome NOT IN ('sent', 'failed')
                   OR {self.table}.outcome = EXCLUDED.outcome
                """,
                tuple(row[col] for col in _COLUMNS),
            )
            if cur.rowcount == 0:
                raise InvalidTransitionError(
                    f"Delivery record {record.id} is already final, refusing {record.outcome.value}"
                )
        logger.debug(f"Ledger append #{record.id}: {record.outcome.value}")

    def query(self, page: int = 1, page_size: int = 10) -> HistoryPage:
        _check_page_size(page_size)
        return self._query(page, page_size)

    @with_db_retry(error_message="Failed to query delivery history")
    def _query(self, conn: psycopg2.extensions.connection, page: int, page_size: int) -> HistoryPage:
        with conn.cursor() as cur:
            cur.execute(f"SELECT COUNT(*) AS count FROM {self.table}")
            total = cur.fetchone()["count"]

            if page < 1:
                return HistoryPage.build([], total, page_size)

            cur.execute(
                f"""
                SELECT {", ".join(_COLUMNS)} FROM {self.table}
                ORDER BY attempted_at DESC, id DESC
                LIMIT %s OFFSET %s
                """,
                (page_size, (page - 1) * page_size),
            )
            rows = cur.fetchall()

        return HistoryPage.build([DeliveryRecord(**dict(row)) for row in rows], total, page_size)

    @with_db_retry(error_message="Failed to look up idempotency key")
    def find_sent(self, conn: psycopg2.extensions.connection, idempotency_key: str) -> DeliveryRecord | None:
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT {", ".join(_COLUMNS)} FROM {self.table}
                WHERE idempotency_key = %s AND outcome = %s
                ORDER BY attempted_at DESC
                LIMIT 1
                """,
                (idempotency_key, DeliveryOutcome.SENT.value),
            )
            row = cur.fetchone()

        return DeliveryRecord(**dict(row)) if row else None

    @with_db_retry(error_message="Failed to count delivery records")
    def count(self, conn: psycopg2.extensions.connection) -> int:
        with conn.cursor() as cur:
            cur.execute(f"SELECT COUNT(*) AS count FROM {self.table}")
            return cur.fetchone()["count"]

    @with_db_retry(error_message="Failed to get ledger stats")
    def stats(self, conn: psycopg2.extensions.connection) -> dict[str, int]:
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT outcome, COUNT(*) AS count
                FROM {self.table}
                GROUP BY outcome
                """
            )
            rows = cur.fetchall()

        return {row["outcome"]: row["count"] for row in rows}
