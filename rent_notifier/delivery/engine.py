"""Delivery engine.

Owns the transport handle and turns a rendered message into exactly one
delivery record. Gating (transport configured, recipient present and
well-formed) happens before any record is created; transport failures
never escape send() and are recorded on the returned record instead.

Version: 1.0.0
"""

from __future__ import annotations

import threading

from rent_notifier.clients.smtp import SMTPClient
from rent_notifier.core.exceptions import ConfigurationMissingError, TransportConnectionError
from rent_notifier.core.logger import get_logger, log_context
from rent_notifier.database.ledger import DeliveryLedger
from rent_notifier.database.settings_store import SettingsStore, validate_recipient
from rent_notifier.models.notification import (
    DeliveryRecord,
    NotificationKind,
    RenderedMessage,
    TransportErrorCategory,
)
from rent_notifier.models.settings import TransportConfig

logger = get_logger(__name__)


class TransportHandle:
    """Lazily built SMTP client for the stored transport config.

    Attributes:
        settings_store: Source of the transport config.
        timeout: SMTP socket timeout in seconds.
    """

    def __init__(self, settings_store: SettingsStore, timeout: int = 30) -> None:
        self.settings_store = settings_store
        self.timeout = timeout
        self._client: SMTPClient | None = None
        self._lock = threading.Lock()

    def get(self) -> SMTPClient | None:
        """Return the cached client, building it on first use.

        Returns:
            SMTP client, or None when no transport config is stored.
        """
        with self._lock:
            if self._client is None:
                config = self.settings_store.get_transport_config()
                if config is None:
                    return None
                self._client = SMTPClient(config, timeout=self.timeout)
            return self._client

    def invalidate(self) -> None:
        """Drop the cached client so the next get() rereads the config."""
        with self._lock:
            self._discard()

    def _discard(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


class DeliveryEngine:
    """Sends rendered messages and records every attempt in the ledger.

    Attributes:
        settings_store: Transport config and recipient source.
        ledger: Delivery history.
        transport: Cached SMTP client holder.
    """

    def __init__(self, settings_store: SettingsStore, ledger: DeliveryLedger, timeout: int = 30) -> None:
        self.settings_store = settings_store
        self.ledger = ledger
        self.timeout = timeout
        self.transport = TransportHandle(settings_store, timeout=timeout)

        logger.info("Delivery engine initialized")

    # =========================================================================
    # Configuration
    # =========================================================================
    def is_configured(self) -> bool:
        """True iff a transport config is stored."""
        return self.settings_store.get_transport_config() is not None

    def update_config(self, config: TransportConfig) -> TransportConfig:
        """Store the transport config and drop the cached connection."""
        saved = self.settings_store.save_transport_config(config)
        self.transport.invalidate()
        logger.info(f"Transport config updated: {config.host}:{config.port}")
        return saved

    def test_connection(self, config: TransportConfig | None = None) -> bool:
        """Check that the candidate (or stored) config can authenticate.

        Never raises: any failure, including a missing config, is False.
        """
        if config is None:
            config = self.settings_store.get_transport_config()
            if config is None:
                logger.warning("Connection test skipped: transport not configured")
                return False

        try:
            with SMTPClient(config, timeout=self.timeout) as client:
                client.verify()
            return True
        except TransportConnectionError as e:
            logger.warning(f"Connection test failed ({e.category.value}): {e}")
            return False
        except Exception as e:
            logger.error(f"Connection test failed unexpectedly: {e}")
            return False

    # =========================================================================
    # Delivery
    # =========================================================================
    def send(
        self,
        recipient: str | None,
        message: RenderedMessage,
        kind: NotificationKind,
        idempotency_key: str | None = None,
    ) -> DeliveryRecord:
        """Deliver one message and return its final delivery record.

        Args:
            recipient: Recipient address.
            message: Rendered subject and bodies.
            kind: Notification kind stored on the record.
            idempotency_key: When a SENT record already carries this key,
                that record is returned and nothing is sent.

        Returns:
            The SENT or FAILED record (or the earlier SENT duplicate).

        Raises:
            ConfigurationMissingError: If transport or recipient is absent.
            ConfigurationInvalidError: If the recipient is malformed.
        """
        client = self.transport.get()
        if client is None:
            raise ConfigurationMissingError("Mail transport is not configured")
        if not recipient:
            raise ConfigurationMissingError("Recipient address is not configured")
        address = validate_recipient(recipient).email

        if idempotency_key:
            existing = self.ledger.find_sent(idempotency_key)
            if existing is not None:
                logger.info(
                    f"Skipped duplicate: {log_context('send', record_id=existing.id, key=idempotency_key)}"
                )
                return existing

        record = DeliveryRecord(
            recipient=address,
            subject=message.subject,
            kind=kind,
            idempotency_key=idempotency_key,
        )
        self.ledger.append(record)
        ctx = log_context("send", record_id=record.id, recipient=address, kind=kind.value)
        logger.info(f"Starting: {ctx}")

        try:
            client.send(address, message)
            record.mark_sent()
            logger.info(f"COMPLETED: {ctx}")
        except TransportConnectionError as e:
            record.mark_failed(str(e), e.category)
            logger.warning(f"FAILED: {ctx} - {e.category.value}: {e}")
        except Exception as e:
            record.mark_failed(str(e), TransportErrorCategory.UNKNOWN)
            logger.error(f"FAILED: {ctx} - unexpected error: {e}", exc_info=True)

        self.ledger.append(record)
        return record

    def close(self) -> None:
        """Close the cached SMTP connection."""
        self.transport.invalidate()
        logger.debug("Delivery engine closed")
