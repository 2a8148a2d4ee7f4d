"""Unit tests for the delivery engine.

Tests gating, delivery records, idempotency and transport caching with a
mocked SMTP connection.

Author: Odiseo
Version: 1.0.0
"""

from __future__ import annotations

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from rent_notifier.core.exceptions import ConfigurationInvalidError, ConfigurationMissingError
from rent_notifier.delivery.engine import DeliveryEngine, TransportHandle
from rent_notifier.models.notification import (
    DeliveryOutcome,
    NotificationKind,
    RenderedMessage,
    TransportErrorCategory,
)

RECIPIENT = "tenant@example.com"


@pytest.fixture
def message() -> RenderedMessage:
    return RenderedMessage(subject="Rent payment reminder - due in 3 days", body_html="<p>Pay</p>", body_text="Pay")


class TestGating:
    """Tests for configuration checks before any record is created."""

    def test_no_transport(self, settings_store, ledger, message):
        engine = DeliveryEngine(settings_store, ledger)

        with pytest.raises(ConfigurationMissingError, match="transport"):
            engine.send(RECIPIENT, message, NotificationKind.TEST_MESSAGE)

        assert ledger.count() == 0

    def test_no_recipient(self, engine, ledger, message):
        with pytest.raises(ConfigurationMissingError, match="Recipient"):
            engine.send(None, message, NotificationKind.TEST_MESSAGE)

        assert ledger.count() == 0

    def test_malformed_recipient(self, engine, ledger, message, patched_smtp):
        with pytest.raises(ConfigurationInvalidError):
            engine.send("not-an-address", message, NotificationKind.TEST_MESSAGE)

        assert ledger.count() == 0
        patched_smtp.send_message.assert_not_called()

    def test_is_configured(self, settings_store, ledger, transport_config):
        engine = DeliveryEngine(settings_store, ledger)
        assert engine.is_configured() is False

        settings_store.save_transport_config(transport_config)
        assert engine.is_configured() is True


class TestSend:
    """Tests for delivery records."""

    def test_send_success(self, engine, ledger, message, patched_smtp):
        record = engine.send(RECIPIENT, message, NotificationKind.PAYMENT_REMINDER, "payment_reminder:2026-03-10")

        assert record.outcome == DeliveryOutcome.SENT
        assert record.recipient == RECIPIENT
        assert record.subject == message.subject
        assert record.kind == NotificationKind.PAYMENT_REMINDER
        assert record.error_detail is None
        patched_smtp.send_message.assert_called_once()

        page = ledger.query()
        assert page.total == 1
        assert page.records[0].id == record.id
        assert page.records[0].outcome == DeliveryOutcome.SENT

    def test_send_failure_returns_failed_record(self, engine, ledger, message, patched_smtp):
        patched_smtp.send_message.side_effect = smtplib.SMTPRecipientsRefused({RECIPIENT: (550, b"No such user")})

        record = engine.send(RECIPIENT, message, NotificationKind.PAYMENT_REMINDER)

        assert record.outcome == DeliveryOutcome.FAILED
        assert record.error_category == TransportErrorCategory.RECIPIENT_REJECTED
        assert "Failed to send" in record.error_detail
        assert ledger.count() == 1
        assert ledger.query().records[0].outcome == DeliveryOutcome.FAILED

    def test_authentication_failure_returns_failed_record(self, engine, message, mock_smtp_connection):
        mock_smtp_connection.login.side_effect = smtplib.SMTPAuthenticationError(535, b"Bad credentials")

        with patch("rent_notifier.clients.smtp.smtplib.SMTP_SSL", return_value=mock_smtp_connection):
            record = engine.send(RECIPIENT, message, NotificationKind.TEST_MESSAGE)

        assert record.outcome == DeliveryOutcome.FAILED
        assert record.error_category == TransportErrorCategory.AUTHENTICATION

    def test_unexpected_error_is_unknown(self, engine, message):
        client = MagicMock()
        client.send.side_effect = RuntimeError("boom")

        with patch.object(engine.transport, "get", return_value=client):
            record = engine.send(RECIPIENT, message, NotificationKind.TEST_MESSAGE)

        assert record.outcome == DeliveryOutcome.FAILED
        assert record.error_category == TransportErrorCategory.UNKNOWN
        assert record.error_detail == "boom"

    def test_pending_record_written_before_transport(self, engine, ledger, message):
        seen = []

        def capture(recipient, msg):
            seen.append(ledger.query().records[0].outcome)

        client = MagicMock()
        client.send.side_effect = capture

        with patch.object(engine.transport, "get", return_value=client):
            engine.send(RECIPIENT, message, NotificationKind.TEST_MESSAGE)

        assert seen == [DeliveryOutcome.PENDING]


class TestIdempotency:
    """Tests for duplicate suppression by idempotency key."""

    def test_second_send_with_same_key_is_skipped(self, engine, ledger, message, patched_smtp):
        first = engine.send(RECIPIENT, message, NotificationKind.PAYMENT_REMINDER, "payment_reminder:2026-03-10")
        second = engine.send(RECIPIENT, message, NotificationKind.PAYMENT_REMINDER, "payment_reminder:2026-03-10")

        assert second.id == first.id
        assert ledger.count() == 1
        patched_smtp.send_message.assert_called_once()

    def test_failed_attempt_does_not_block_retry(self, engine, ledger, message, patched_smtp):
        patched_smtp.send_message.side_effect = [smtplib.SMTPDataError(554, b"spam"), {}]

        first = engine.send(RECIPIENT, message, NotificationKind.MONTHLY_BILL, "monthly_bill:2026-02")
        second = engine.send(RECIPIENT, message, NotificationKind.MONTHLY_BILL, "monthly_bill:2026-02")

        assert first.outcome == DeliveryOutcome.FAILED
        assert second.outcome == DeliveryOutcome.SENT
        assert ledger.count() == 2

    def test_manual_sends_are_never_deduplicated(self, engine, ledger, message, patched_smtp):
        engine.send(RECIPIENT, message, NotificationKind.TEST_MESSAGE)
        engine.send(RECIPIENT, message, NotificationKind.TEST_MESSAGE)

        assert ledger.count() == 2


class TestTransportConfig:
    """Tests for config updates and connection tests."""

    def test_update_config_invalidates_cached_client(self, engine, transport_config, patched_smtp):
        first = engine.transport.get()
        updated = transport_config.model_copy(update={"host": "smtp.163.com"})

        with patch.object(first, "close") as mock_close:
            engine.update_config(updated)
        second = engine.transport.get()

        mock_close.assert_called_once()
        assert second is not first
        assert second.config.host == "smtp.163.com"
        assert engine.settings_store.get_transport_config().host == "smtp.163.com"

    def test_test_connection_success(self, engine, patched_smtp):
        assert engine.test_connection() is True
        patched_smtp.login.assert_called_once()

    def test_test_connection_candidate_not_stored(self, settings_store, ledger, transport_config, patched_smtp):
        engine = DeliveryEngine(settings_store, ledger)

        assert engine.test_connection(transport_config) is True
        assert settings_store.get_transport_config() is None

    def test_test_connection_failure_never_raises(self, engine):
        with patch("rent_notifier.clients.smtp.smtplib.SMTP_SSL", side_effect=ConnectionRefusedError("refused")):
            assert engine.test_connection() is False

    def test_test_connection_unconfigured(self, settings_store, ledger):
        engine = DeliveryEngine(settings_store, ledger)

        assert engine.test_connection() is False


class TestTransportHandle:
    """Tests for the cached SMTP client holder."""

    def test_get_returns_none_when_unconfigured(self, settings_store):
        assert TransportHandle(settings_store).get() is None

    def test_get_caches_client(self, configured_store):
        handle = TransportHandle(configured_store, timeout=7)

        client = handle.get()

        assert handle.get() is client
        assert client.timeout == 7


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
