"""Unit tests for the scheduler trigger.

Runs daily and monthly ticks and manual actions over in-memory storage
and a mocked SMTP connection.

Author: Odiseo
Version: 1.0.0
"""

from __future__ import annotations

import smtplib
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from rent_notifier.core.exceptions import ConfigurationMissingError, RecordNotFoundError
from rent_notifier.database.ledger import InMemoryDeliveryLedger
from rent_notifier.database.settings_store import InMemorySettingsStore
from rent_notifier.delivery.engine import DeliveryEngine
from rent_notifier.models.notification import DeliveryOutcome, NotificationKind
from rent_notifier.models.settings import NotificationConfig
from rent_notifier.scheduler.tick import NotificationScheduler


def _scheduler(store, renderer, today=date(2026, 3, 7)) -> NotificationScheduler:
    engine = DeliveryEngine(store, InMemoryDeliveryLedger(), timeout=5)
    return NotificationScheduler(store, engine, renderer=renderer, clock=lambda: today)


class TestDailyTick:
    """Tests for run_daily."""

    def test_payment_reminder_sent(self, scheduler, ledger, patched_smtp):
        result = scheduler.run_daily()

        assert result.success is True
        assert result.message == "Daily tick completed"
        assert result.results.payment_reminders == 1
        assert result.results.overdue_reminders == 0
        assert result.results.errors == []

        page = ledger.query()
        assert page.total == 1
        record = page.records[0]
        assert record.kind == NotificationKind.PAYMENT_REMINDER
        assert record.outcome == DeliveryOutcome.SENT
        assert record.recipient == "tenant@example.com"
        assert record.idempotency_key == "payment_reminder:2026-03-10"

    def test_rerun_same_day_does_not_resend(self, scheduler, ledger, patched_smtp):
        scheduler.run_daily()
        result = scheduler.run_daily()

        assert result.results.payment_reminders == 1
        assert ledger.count() == 1
        patched_smtp.send_message.assert_called_once()

    def test_overdue_reminder_sent(self, scheduler, ledger, patched_smtp):
        result = scheduler.run_daily(date(2026, 3, 12))

        assert result.results.payment_reminders == 0
        assert result.results.overdue_reminders == 1
        assert ledger.query().records[0].kind == NotificationKind.OVERDUE_REMINDER

    def test_nothing_due(self, scheduler, ledger, patched_smtp):
        result = scheduler.run_daily(date(2026, 3, 20))

        assert result.success is True
        assert result.results.payment_reminders == 0
        assert result.results.overdue_reminders == 0
        assert ledger.count() == 0

    def test_transport_failure_reported_in_errors(self, scheduler, ledger, patched_smtp):
        patched_smtp.send_message.side_effect = smtplib.SMTPDataError(554, b"Message rejected")

        result = scheduler.run_daily()

        assert result.success is True
        assert result.results.payment_reminders == 0
        assert len(result.results.errors) == 1
        assert result.results.errors[0].startswith("Failed to send payment reminder")
        assert ledger.query().records[0].outcome == DeliveryOutcome.FAILED

    def test_one_kind_failing_does_not_block_another(self, configured_store, renderer, patched_smtp):
        # Due day 1: on Mar 7 rent is 6 days overdue and Apr 1 is 25 days away
        configured_store.save_notification_config(NotificationConfig(payment_reminder_lead_days=25))
        billing = configured_store.get_billing_cycle().model_copy(update={"due_day": 1})
        configured_store.save_billing_cycle(billing)
        scheduler = _scheduler(configured_store, renderer)
        original = scheduler.renderer.render

        def render(kind, context):
            if kind == NotificationKind.PAYMENT_REMINDER:
                raise RuntimeError("template exploded")
            return original(kind, context)

        with patch.object(scheduler.renderer, "render", side_effect=render):
            result = scheduler.run_daily()

        assert result.success is True
        assert result.results.payment_reminders == 0
        assert result.results.overdue_reminders == 1
        assert result.results.errors == ["Failed to send payment reminder: template exploded"]

    def test_unexpected_error_is_not_raised(self, scheduler):
        with patch.object(scheduler.settings_store, "get_billing_cycle", side_effect=RuntimeError("db down")):
            result = scheduler.run_daily()

        assert result.success is False
        assert result.error == "db down"


class TestSkips:
    """Tests for the skip conditions checked before evaluating rules."""

    def test_no_billing_cycle(self, settings_store, renderer):
        result = _scheduler(settings_store, renderer).run_daily()

        assert result.success is True
        assert result.message == "Skipped: billing cycle not configured"

    def test_no_notification_config(self, settings_store, billing_cycle, renderer):
        settings_store.save_billing_cycle(billing_cycle)

        result = _scheduler(settings_store, renderer).run_daily()

        assert result.message == "Skipped: notification settings not configured"

    def test_no_transport(self, settings_store, billing_cycle, notification_config, renderer):
        settings_store.save_billing_cycle(billing_cycle)
        settings_store.save_notification_config(notification_config)

        result = _scheduler(settings_store, renderer).run_daily()

        assert result.message == "Skipped: mail transport not configured"
        assert result.results.payment_reminders == 0

    def test_no_recipient(self, settings_store, billing_cycle, notification_config, transport_config, renderer):
        settings_store.save_billing_cycle(billing_cycle)
        settings_store.save_notification_config(notification_config)
        settings_store.save_transport_config(transport_config)

        result = _scheduler(settings_store, renderer).run_daily()

        assert result.message == "Skipped: recipient not configured"

    def test_cannot_connect(self, scheduler, ledger):
        with patch("rent_notifier.clients.smtp.smtplib.SMTP_SSL", side_effect=ConnectionRefusedError("refused")):
            result = scheduler.run_daily()

        assert result.success is True
        assert result.message == "Skipped: mail transport cannot connect"
        assert ledger.count() == 0


class TestMonthlyTick:
    """Tests for run_monthly."""

    def test_monthly_bill_sent(self, scheduler, ledger, patched_smtp):
        result = scheduler.run_monthly(date(2026, 3, 1))

        assert result.success is True
        assert result.year_month == "2026-02"
        assert result.results.monthly_bills == 1
        record = ledger.query().records[0]
        assert record.kind == NotificationKind.MONTHLY_BILL
        assert record.subject == "2026-02 monthly statement"
        assert record.idempotency_key == "monthly_bill:2026-02"

    def test_no_record_for_previous_month(self, scheduler, ledger, patched_smtp):
        result = scheduler.run_monthly(date(2026, 5, 1))

        assert result.success is True
        assert result.message == "Skipped: no billing record for 2026-04"
        assert result.results.monthly_bills == 0
        assert ledger.count() == 0

    def test_disabled(self, configured_store, renderer):
        configured_store.save_notification_config(NotificationConfig(monthly_bill_enabled=False))

        result = _scheduler(configured_store, renderer).run_monthly(date(2026, 3, 1))

        assert result.message == "Skipped: monthly bill disabled"

    def test_monthly_rerun_does_not_resend(self, scheduler, ledger, patched_smtp):
        scheduler.run_monthly(date(2026, 3, 1))
        scheduler.run_monthly(date(2026, 3, 1))

        assert ledger.count() == 1


class TestManualActions:
    """Tests for the UI-triggered sends."""

    def test_payment_reminder_now(self, scheduler, ledger, patched_smtp):
        result = scheduler.send_payment_reminder_now(date(2026, 3, 1))

        assert result.success is True
        assert result.record.idempotency_key is None
        assert ledger.query().records[0].subject == "Rent payment reminder - due in 9 days"

    def test_payment_reminder_not_needed_on_due_day(self, scheduler, ledger, patched_smtp):
        result = scheduler.send_payment_reminder_now(date(2026, 3, 10))

        assert result.success is False
        assert result.message == "No payment reminder needed today"
        assert ledger.count() == 0

    def test_payment_reminder_without_billing(self, settings_store, renderer):
        with pytest.raises(ConfigurationMissingError):
            _scheduler(settings_store, renderer).send_payment_reminder_now()

    def test_test_message(self, scheduler, ledger, patched_smtp):
        result = scheduler.send_test_message_now()

        assert result.success is True
        assert ledger.query().records[0].kind == NotificationKind.TEST_MESSAGE

    def test_test_message_unconfigured(self, settings_store, renderer):
        with pytest.raises(ConfigurationMissingError):
            _scheduler(settings_store, renderer).send_test_message_now()

    def test_test_message_cannot_connect(self, scheduler, ledger):
        with patch("rent_notifier.clients.smtp.smtplib.SMTP_SSL", side_effect=ConnectionRefusedError("refused")):
            result = scheduler.send_test_message_now()

        assert result.success is False
        assert ledger.count() == 0

    def test_system_notification(self, scheduler, ledger, patched_smtp):
        result = scheduler.send_system_notification("Backup finished", "3 files")

        assert result.success is True
        assert ledger.query().records[0].kind == NotificationKind.SYSTEM_NOTIFICATION

    def test_system_notification_disabled(self, configured_store, renderer, patched_smtp):
        configured_store.save_notification_config(NotificationConfig(system_notification_enabled=False))

        result = _scheduler(configured_store, renderer).send_system_notification("Backup finished")

        assert result.success is False
        assert result.message == "System notifications are disabled"
        patched_smtp.send_message.assert_not_called()

    def test_manual_send_failure(self, scheduler, patched_smtp):
        patched_smtp.send_message.side_effect = smtplib.SMTPServerDisconnected("gone")

        result = scheduler.send_system_notification("Backup finished")

        assert result.success is False
        assert result.message.startswith("Delivery failed:")
        assert result.record.outcome == DeliveryOutcome.FAILED

    def test_monthly_bill_now(self, scheduler, patched_smtp):
        result = scheduler.send_monthly_bill_now("2026-02")

        assert result.success is True
        assert result.message == "Monthly statement for 2026-02 sent"

    def test_monthly_bill_now_missing_record(self, scheduler, patched_smtp):
        with pytest.raises(RecordNotFoundError):
            scheduler.send_monthly_bill_now("2025-01")


class TestStatus:
    """Tests for status()."""

    def test_configured(self, scheduler, patched_smtp):
        status = scheduler.status()

        assert status.is_configured is True
        assert status.can_connect is True
        assert status.recipient == "tenant@example.com"
        assert status.transport.has_secret is True

    def test_unconfigured(self, settings_store, renderer):
        status = _scheduler(settings_store, renderer).status()

        assert status.has_transport_config is False
        assert status.is_configured is False
        assert status.can_connect is False
        assert status.transport is None

    def test_error_captured(self, scheduler):
        scheduler.engine.ledger = MagicMock()
        scheduler.engine.ledger.stats.side_effect = RuntimeError("boom")

        with patch.object(scheduler.engine, "test_connection", return_value=True):
            status = scheduler.status()

        assert status.error == "boom"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
