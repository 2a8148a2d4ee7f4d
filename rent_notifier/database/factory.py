"""Storage backend selection.

Author: Odiseo
Version: 1.0.0
"""

from __future__ import annotations

from dataclasses import dataclass

from rent_notifier.config import NotifierConfig, get_settings
from rent_notifier.core.logger import get_logger
from rent_notifier.database.connection import DatabasePool
from rent_notifier.database.ledger import DeliveryLedger, InMemoryDeliveryLedger, PostgresDeliveryLedger
from rent_notifier.database.settings_store import (
    InMemorySettingsStore,
    PostgresSettingsStore,
    SettingsStore,
)

logger = get_logger(__name__)


@dataclass
class Storage:
    """Settings store and ledger sharing one backend."""

    settings_store: SettingsStore
    ledger: DeliveryLedger
    pool: DatabasePool | None = None

    def health_check(self) -> bool:
        return self.pool.health_check() if self.pool else True

    def close(self) -> None:
        if self.pool:
            self.pool.close()


def create_storage(config: NotifierConfig | None = None, initialize: bool = True) -> Storage:
    """Build the storage backend named by STORAGE_BACKEND.

    Args:
        config: Service configuration (uses global if None).
        initialize: Create the PostgreSQL schema if missing.

    Raises:
        LedgerError: If the PostgreSQL pool cannot be created.
    """
    config = config or get_settings()

    if config.STORAGE_BACKEND == "memory":
        logger.warning("Using in-memory storage: settings and history are lost on restart")
        return Storage(settings_store=InMemorySettingsStore(), ledger=InMemoryDeliveryLedger())

    pool = DatabasePool(config)
    storage = Storage(
        settings_store=PostgresSettingsStore(pool),
        ledger=PostgresDeliveryLedger(pool),
        pool=pool,
    )
    if initialize:
        storage.settings_store.initialize_schema()
    return storage
