"""Database module for the rent notifier.

Contains the settings store, the delivery history ledger and their
PostgreSQL and in-memory backends.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from rent_notifier.database.connection import DatabasePool, with_db_retry
from rent_notifier.database.factory import Storage, create_storage
from rent_notifier.database.ledger import (
    DeliveryLedger,
    InMemoryDeliveryLedger,
    PostgresDeliveryLedger,
)
from rent_notifier.database.settings_store import (
    InMemorySettingsStore,
    PostgresSettingsStore,
    SettingsStore,
    validate_recipient,
)

__all__ = [
    "DatabasePool",
    "with_db_retry",
    "Storage",
    "create_storage",
    "DeliveryLedger",
    "InMemoryDeliveryLedger",
    "PostgresDeliveryLedger",
    "SettingsStore",
    "InMemorySettingsStore",
    "PostgresSettingsStore",
    "validate_recipient",
]
