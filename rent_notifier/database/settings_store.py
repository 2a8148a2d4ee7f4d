"""User-managed settings store.

Holds the singleton rows (notification toggles, billing cycle, mail
transport, recipient) and serves monthly billing records to the rule
evaluator. Every getter returns None when the row is absent; the caller
decides whether that is "skip" or "error".

Backends:
- PostgresSettingsStore: singleton tables (id = 1) via the shared pool
- InMemorySettingsStore: process-local, for development and tests

Author: Odiseo
Version: 1.0.0
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

import psycopg2.extensions
from pydantic import BaseModel, ValidationError

from rent_notifier.core.exceptions import ConfigurationInvalidError
from rent_notifier.core.logger import get_logger
from rent_notifier.database.connection import DatabasePool, with_db_retry
from rent_notifier.models.settings import (
    BillingCycleConfig,
    BillingRecord,
    NotificationConfig,
    RecipientSettings,
    TransportConfig,
)

logger = get_logger(__name__)


def validate_recipient(email: str | RecipientSettings) -> RecipientSettings:
    """Coerce a recipient address into RecipientSettings.

    Raises:
        ConfigurationInvalidError: If the address is malformed.
    """
    if isinstance(email, RecipientSettings):
        return email
    try:
        return RecipientSettings(email=email)
    except ValidationError as e:
        raise ConfigurationInvalidError(f"Invalid recipient address: {email}", field="email") from e


class SettingsStore(ABC):
    """Interface shared by the settings store backends."""

    @abstractmethod
    def get_notification_config(self) -> NotificationConfig | None: ...

    @abstractmethod
    def save_notification_config(self, config: NotificationConfig) -> NotificationConfig: ...

    @abstractmethod
    def get_billing_cycle(self) -> BillingCycleConfig | None: ...

    @abstractmethod
    def save_billing_cycle(self, config: BillingCycleConfig) -> BillingCycleConfig: ...

    @abstractmethod
    def get_transport_config(self) -> TransportConfig | None: ...

    @abstractmethod
    def save_transport_config(self, config: TransportConfig) -> TransportConfig: ...

    @abstractmethod
    def get_recipient(self) -> RecipientSettings | None: ...

    @abstractmethod
    def _store_recipient(self, recipient: RecipientSettings) -> None: ...

    @abstractmethod
    def get_billing_record(self, year_month: str) -> BillingRecord | None: ...

    @abstractmethod
    def save_billing_record(self, record: BillingRecord) -> BillingRecord: ...

    def save_recipient(self, email: str | RecipientSettings) -> RecipientSettings:
        """Validate and store the recipient address.

        Raises:
            ConfigurationInvalidError: If the address is malformed.
        """
        recipient = validate_recipient(email)
        self._store_recipient(recipient)
        logger.info(f"Recipient updated: {recipient.email}")
        return recipient

    def get_or_create_notification_config(self) -> NotificationConfig:
        """Return the notification config, storing defaults on first use."""
        config = self.get_notification_config()
        if config is None:
            logger.info("No notification config stored, creating defaults")
            config = self.save_notification_config(NotificationConfig())
        return config

    def initialize_schema(self) -> None:
        """Create backing tables (no-op for backends without any)."""

    def close(self) -> None:
        """Release backend resources."""


class InMemorySettingsStore(SettingsStore):
    """Settings kept in process memory."""

    def __init__(self) -> None:
        self._rows: dict[str, BaseModel] = {}
        self._billing_records: dict[str, BillingRecord] = {}
        self._lock = threading.Lock()

    def _get(self, key: str):
        with self._lock:
            row = self._rows.get(key)
            return row.model_copy(deep=True) if row is not None else None

    def _put(self, key: str, row: BaseModel):
        with self._lock:
            self._rows[key] = row.model_copy(deep=True)
        return row

    def get_notification_config(self) -> NotificationConfig | None:
        return self._get("notification_config")

    def save_notification_config(self, config: NotificationConfig) -> NotificationConfig:
        return self._put("notification_config", config)

    def get_billing_cycle(self) -> BillingCycleConfig | None:
        return self._get("billing_cycle")

    def save_billing_cycle(self, config: BillingCycleConfig) -> BillingCycleConfig:
        return self._put("billing_cycle", config)

    def get_transport_config(self) -> TransportConfig | None:
        return self._get("transport_config")

    def save_transport_config(self, config: TransportConfig) -> TransportConfig:
        return self._put("transport_config", config)

    def get_recipient(self) -> RecipientSettings | None:
        return self._get("recipient")

    def _store_recipient(self, recipient: RecipientSettings) -> None:
        self._put("recipient", recipient)

    def get_billing_record(self, year_month: str) -> BillingRecord | None:
        with self._lock:
            record = self._billing_records.get(year_month)
            return record.model_copy(deep=True) if record is not None else None

    def save_billing_record(self, record: BillingRecord) -> BillingRecord:
        with self._lock:
            self._billing_records[record.year_month] = record.model_copy(deep=True)
        return record


class PostgresSettingsStore(SettingsStore):
    """Settings stored in singleton PostgreSQL rows.

    Attributes:
        db: Shared connection pool.
        schema: Schema holding the settings tables.
    """

    def __init__(self, db: DatabasePool) -> None:
        self.db = db
        self.schema = db.schema
        logger.info(f"Settings store initialized: schema={self.schema}")

    def initialize_schema(self) -> None:
        self.db.initialize_schema()

    # =========================================================================
    # Helpers
    # =========================================================================
    def _upsert(self, conn: psycopg2.extensions.connection, table: str, values: dict) -> None:
        columns = ["id", *values]
        updates = ", ".join(f"{col} = EXCLUDED.{col}" for col in values)
        with conn.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO {self.schema}.{table} ({", ".join(columns)}, updated_at)
                VALUES ({", ".join(["%s"] * len(columns))}, NOW())
                ON CONFLICT (id) DO UPDATE SET {updates}, updated_at = NOW()
                """,
                (1, *values.values()),
            )
        logger.debug(f"Saved singleton row {self.schema}.{table}")

    def _fetch(self, conn: psycopg2.extensions.connection, table: str, columns: tuple[str, ...]) -> dict | None:
        with conn.cursor() as cur:
            cur.execute(f"SELECT {', '.join(columns)} FROM {self.schema}.{table} WHERE id = 1")
            row = cur.fetchone()
        return dict(row) if row else None

    # =========================================================================
    # Notification config
    # =========================================================================
    @with_db_retry(error_message="Failed to load notification config")
    def get_notification_config(self, conn: psycopg2.extensions.connection) -> NotificationConfig | None:
        row = self._fetch(conn, "notification_config", tuple(NotificationConfig.model_fields))
        return NotificationConfig(**row) if row else None

    @with_db_retry(error_message="Failed to save notification config")
    def save_notification_config(
        self, conn: psycopg2.extensions.connection, config: NotificationConfig
    ) -> NotificationConfig:
        self._upsert(conn, "notification_config", config.model_dump())
        return config

    # =========================================================================
    # Billing cycle
    # =========================================================================
    @with_db_retry(error_message="Failed to load billing cycle")
    def get_billing_cycle(self, conn: psycopg2.extensions.connection) -> BillingCycleConfig | None:
        row = self._fetch(conn, "billing_cycle", tuple(BillingCycleConfig.model_fields))
        return BillingCycleConfig(**row) if row else None

    @with_db_retry(error_message="Failed to save billing cycle")
    def save_billing_cycle(self, conn: psycopg2.extensions.connection, config: BillingCycleConfig) -> BillingCycleConfig:
        self._upsert(conn, "billing_cycle", config.model_dump())
        return config

    # =========================================================================
    # Transport
    # =========================================================================
    @with_db_retry(error_message="Failed to load transport config")
    def get_transport_config(self, conn: psycopg2.extensions.connection) -> TransportConfig | None:
        row = self._fetch(conn, "transport_config", tuple(TransportConfig.model_fields))
        return TransportConfig(**row) if row else None

    @with_db_retry(error_message="Failed to save transport config")
    def save_transport_config(self, conn: psycopg2.extensions.connection, config: TransportConfig) -> TransportConfig:
        self._upsert(conn, "transport_config", config.model_dump())
        logger.info(f"Transport config saved: {config.host}:{config.port}")
        return config

    # =========================================================================
    # Recipient
    # =========================================================================
    @with_db_retry(error_message="Failed to load recipient")
    def get_recipient(self, conn: psycopg2.extensions.connection) -> RecipientSettings | None:
        row = self._fetch(conn, "recipient_settings", ("email",))
        return RecipientSettings(**row) if row else None

    @with_db_retry(error_message="Failed to save recipient")
    def _store_recipient(self, conn: psycopg2.extensions.connection, recipient: RecipientSettings) -> None:
        self._upsert(conn, "recipient_settings", {"email": recipient.email})

    # =========================================================================
    # Billing records
    # =========================================================================
    @with_db_retry(error_message="Failed to load billing record")
    def get_billing_record(self, conn: psycopg2.extensions.connection, year_month: str) -> BillingRecord | None:
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT {", ".join(BillingRecord.model_fields)}
                FROM {self.schema}.billing_records
                WHERE year_month = %s
                """,
                (year_month,),
            )
            row = cur.fetchone()

        if not row:
            logger.debug(f"Billing record {year_month} not found")
            return None
        return BillingRecord(**dict(row))

    @with_db_retry(error_message="Failed to save billing record")
    def save_billing_record(self, conn: psycopg2.extensions.connection, record: BillingRecord) -> BillingRecord:
        values = record.model_dump()
        columns = list(values)
        updates = ", ".join(f"{col} = EXCLUDED.{col}" for col in columns if col != "year_month")
        with conn.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO {self.schema}.billing_records ({", ".join(columns)})
                VALUES ({", ".join(["%s"] * len(columns))})
                ON CONFLICT (year_month) DO UPDATE SET {updates}
                """,
                tuple(values.values()),
            )
        return record
