"""Scheduler trigger.

Entry points invoked by an external cron (daily and monthly ticks) and
by the UI (manual sends). A tick loads the settings, short-circuits to a
"skipped" result when anything required is missing, evaluates the rules
and sends each due notification independently, so one failing kind never
blocks another.

Version: 1.0.0
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime

from rent_notifier.config import NotifierConfig, get_settings
from rent_notifier.core.exceptions import ConfigurationMissingError, NotifierError
from rent_notifier.core.logger import get_logger, log_context
from rent_notifier.database.factory import Storage, create_storage
from rent_notifier.database.settings_store import SettingsStore
from rent_notifier.delivery.engine import DeliveryEngine
from rent_notifier.models.context import DueNotification
from rent_notifier.models.notification import DeliveryOutcome, DeliveryRecord, NotificationKind
from rent_notifier.models.results import (
    ActionResult,
    DailyTickCounts,
    DailyTickResult,
    MonthlyTickCounts,
    MonthlyTickResult,
    ServiceStatus,
)
from rent_notifier.models.settings import BillingCycleConfig
from rent_notifier.rules.dates import days_until_due, previous_year_month
from rent_notifier.rules.evaluator import RuleEvaluator
from rent_notifier.templates.renderer import MessageRenderer

logger = get_logger(__name__)

_COUNTER_FIELDS = {
    NotificationKind.PAYMENT_REMINDER: "payment_reminders",
    NotificationKind.OVERDUE_REMINDER: "overdue_reminders",
    NotificationKind.MONTHLY_BILL: "monthly_bills",
}


class NotificationScheduler:
    """Runs the daily and monthly ticks and the manual send actions.

    Attributes:
        settings_store: User-managed settings.
        engine: Delivery engine (transport + ledger).
        evaluator: Notification rules.
        renderer: Message renderer.
        clock: Returns "today" in the configured timezone.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        engine: DeliveryEngine,
        evaluator: RuleEvaluator | None = None,
        renderer: MessageRenderer | None = None,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self.settings_store = settings_store
        self.engine = engine
        self.evaluator = evaluator or RuleEvaluator(settings_store)
        self.renderer = renderer or MessageRenderer()
        self.clock = clock or _local_today

    # =========================================================================
    # Scheduled ticks
    # =========================================================================
    def run_daily(self, today: date | None = None) -> DailyTickResult:
        """Send the payment and overdue reminders due today.

        Never raises: unexpected errors become success=False.
        """
        today = today or self.clock()
        counts = DailyTickCounts()
        logger.info(f"Daily tick started for {today.isoformat()}")

        try:
            skip = self._preflight()
            if skip:
                logger.info(f"Daily tick skipped: {skip}")
                return DailyTickResult(success=True, message=f"Skipped: {skip}", results=counts)

            billing = self.settings_store.get_billing_cycle()
            notifications = self.settings_store.get_notification_config()
            due = self.evaluator.evaluate_daily(today, billing, notifications)
            self._deliver_all(due, counts)

            logger.info(
                f"Daily tick completed: payment={counts.payment_reminders} "
                f"overdue={counts.overdue_reminders} errors={len(counts.errors)}"
            )
            return DailyTickResult(success=True, message="Daily tick completed", results=counts)

        except Exception as e:
            logger.error(f"Daily tick failed: {e}", exc_info=True)
            return DailyTickResult(success=False, message="Daily tick failed", results=counts, error=str(e))

    def run_monthly(self, today: date | None = None) -> MonthlyTickResult:
        """Send the previous month's statement if its record exists.

        Never raises: unexpected errors become success=False.
        """
        today = today or self.clock()
        year_month = previous_year_month(today)
        counts = MonthlyTickCounts()
        logger.info(f"Monthly tick started for {year_month}")

        try:
            notifications = self.settings_store.get_notification_config()
            if notifications is not None and not notifications.monthly_bill_enabled:
                logger.info("Monthly tick skipped: monthly bill disabled")
                return MonthlyTickResult(
                    success=True, message="Skipped: monthly bill disabled", year_month=year_month, results=counts
                )

            skip = self._preflight()
            if skip:
                logger.info(f"Monthly tick skipped: {skip}")
                return MonthlyTickResult(
                    success=True, message=f"Skipped: {skip}", year_month=year_month, results=counts
                )

            billing = self.settings_store.get_billing_cycle()
            due = self.evaluator.evaluate_monthly(today, billing, notifications)
            if not due:
                return MonthlyTickResult(
                    success=True,
                    message=f"Skipped: no billing record for {year_month}",
                    year_month=year_month,
                    results=counts,
                )

            self._deliver_all(due, counts)

            logger.info(f"Monthly tick completed: bills={counts.monthly_bills} errors={len(counts.errors)}")
            return MonthlyTickResult(
                success=True, message="Monthly tick completed", year_month=year_month, results=counts
            )

        except Exception as e:
            logger.error(f"Monthly tick failed: {e}", exc_info=True)
            return MonthlyTickResult(
                success=False, message="Monthly tick failed", year_month=year_month, results=counts, error=str(e)
            )

    def _preflight(self) -> str | None:
        """Return why a tick must be skipped, or None when it can run."""
        if self.settings_store.get_billing_cycle() is None:
            return "billing cycle not configured"
        if self.settings_store.get_notification_config() is None:
            return "notification settings not configured"
        if not self.engine.is_configured():
            return "mail transport not configured"
        if self.settings_store.get_recipient() is None:
            return "recipient not configured"
        if not self.engine.test_connection():
            return "mail transport cannot connect"
        return None

    def _deliver_all(self, due: list[DueNotification], counts: DailyTickCounts | MonthlyTickCounts) -> None:
        for notification in due:
            label = notification.kind.value.replace("_", " ")
            try:
                record = self._deliver(notification)
            except Exception as e:
                logger.error(f"Failed to send {label}: {e}", exc_info=not isinstance(e, NotifierError))
                counts.errors.append(f"Failed to send {label}: {e}")
                continue

            if record.outcome == DeliveryOutcome.SENT:
                setattr(counts, _COUNTER_FIELDS[notification.kind], 1)
            else:
                counts.errors.append(f"Failed to send {label}: {record.error_detail}")

    def _deliver(self, notification: DueNotification) -> DeliveryRecord:
        """Render and send one notification to the stored recipient."""
        recipient = self.settings_store.get_recipient()
        message = self.renderer.render(notification.kind, notification.context)
        logger.debug(f"Delivering: {log_context('deliver', kind=notification.kind.value)}")
        return self.engine.send(
            recipient.email if recipient else None,
            message,
            notification.kind,
            idempotency_key=notification.idempotency_key,
        )

    # =========================================================================
    # Manual actions
    # =========================================================================
    def send_payment_reminder_now(self, today: date | None = None) -> ActionResult:
        """Send a payment reminder immediately, if a due date lies ahead.

        Raises:
            ConfigurationMissingError: If billing, transport or recipient is absent.
            ConfigurationInvalidError: If the recipient is malformed.
        """
        today = today or self.clock()
        billing = self._require_billing()

        if days_until_due(billing.due_day, today) <= 0:
            return ActionResult(success=False, message="No payment reminder needed today")

        notification = self.evaluator.evaluate_now(NotificationKind.PAYMENT_REMINDER, today, billing)
        return self._action(notification, "Payment reminder sent")

    def send_test_message_now(self) -> ActionResult:
        """Verify the stored transport and send a test message.

        Raises:
            ConfigurationMissingError: If transport or recipient is absent.
        """
        if not self.engine.is_configured():
            raise ConfigurationMissingError("Mail transport is not configured")
        if self.settings_store.get_recipient() is None:
            raise ConfigurationMissingError("Recipient address is not configured")
        if not self.engine.test_connection():
            return ActionResult(success=False, message="Mail transport cannot connect, check the settings")

        notification = self.evaluator.evaluate_now(NotificationKind.TEST_MESSAGE, self.clock())
        return self._action(notification, "Test message sent")

    def send_system_notification(self, message: str, details: str | None = None) -> ActionResult:
        """Send a free-form notification unless system notifications are off.

        Raises:
            ConfigurationMissingError: If transport or recipient is absent.
            ConfigurationInvalidError: If message is empty.
        """
        notifications = self.settings_store.get_or_create_notification_config()
        if not notifications.system_notification_enabled:
            logger.info("System notification suppressed: disabled in settings")
            return ActionResult(success=False, message="System notifications are disabled")

        notification = self.evaluator.evaluate_now(
            NotificationKind.SYSTEM_NOTIFICATION, self.clock(), message=message, details=details
        )
        return self._action(notification, "System notification sent")

    def send_monthly_bill_now(self, year_month: str | None = None) -> ActionResult:
        """Send the statement for year_month (default: previous month).

        Raises:
            ConfigurationMissingError: If billing, transport or recipient is absent.
            ConfigurationInvalidError: If year_month is malformed.
            RecordNotFoundError: If no record exists for the month.
        """
        billing = self._require_billing()
        notification = self.evaluator.evaluate_now(
            NotificationKind.MONTHLY_BILL, self.clock(), billing, year_month=year_month
        )
        return self._action(notification, f"Monthly statement for {notification.context.year_month} sent")

    def _require_billing(self) -> BillingCycleConfig:
        billing = self.settings_store.get_billing_cycle()
        if billing is None:
            raise ConfigurationMissingError("Billing cycle is not configured")
        return billing

    def _action(self, notification: DueNotification, success_message: str) -> ActionResult:
        record = self._deliver(notification)
        if record.outcome == DeliveryOutcome.SENT:
            return ActionResult(success=True, message=success_message, record=record)
        return ActionResult(success=False, message=f"Delivery failed: {record.error_detail}", record=record)

    # =========================================================================
    # Status
    # =========================================================================
    def status(self) -> ServiceStatus:
        """Report readiness without raising."""
        try:
            transport = self.settings_store.get_transport_config()
            recipient = self.settings_store.get_recipient()
            can_connect = self.engine.test_connection(transport) if transport else False
            return ServiceStatus(
                has_transport_config=transport is not None,
                has_recipient=recipient is not None,
                is_configured=transport is not None and recipient is not None,
                can_connect=can_connect,
                transport=transport.to_view() if transport else None,
                recipient=recipient.email if recipient else None,
                ledger_stats=self.engine.ledger.stats(),
            )
        except Exception as e:
            logger.error(f"Failed to get service status: {e}")
            return ServiceStatus(error=str(e))

    def close(self) -> None:
        self.engine.close()


def _local_today() -> date:
    """Today's date in the configured TIMEZONE."""
    return datetime.now(get_settings().tzinfo).date()


def create_scheduler(
    config: NotifierConfig | None = None,
    storage: Storage | None = None,
) -> tuple[NotificationScheduler, Storage]:
    """Wire storage, engine, evaluator and renderer from the configuration.

    Returns:
        The scheduler and the storage it uses (caller closes both).
    """
    config = config or get_settings()
    storage = storage or create_storage(config)
    engine = DeliveryEngine(storage.settings_store, storage.ledger, timeout=config.SMTP_TIMEOUT)
    renderer = MessageRenderer(
        template_dir=config.TEMPLATE_DIR,
        currency_symbol=config.CURRENCY_SYMBOL,
        app_base_url=config.APP_BASE_URL,
    )
    scheduler = NotificationScheduler(
        storage.settings_store,
        engine,
        renderer=renderer,
        clock=lambda: datetime.now(config.tzinfo).date(),
    )
    return scheduler, storage
