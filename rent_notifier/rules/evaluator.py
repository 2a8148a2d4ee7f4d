"""Notification rule evaluator.

Decides which notification kinds are due on a given day. The evaluator
only looks at dates and toggles: whether mail can actually be sent is the
delivery engine's decision, so callers can report "due but unconfigured"
separately from "not due".

Rules:
    - payment reminder: enabled AND days_until_due == lead days (one day per cycle)
    - overdue reminder: enabled AND 1 <= days_since_due <= 7 (every day in the window)
    - monthly bill: enabled AND a billing record exists for the previous month

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Protocol

from rent_notifier.core.exceptions import ConfigurationInvalidError, RecordNotFoundError
from rent_notifier.core.logger import get_logger
from rent_notifier.models.context import (
    DueNotification,
    MonthlyBillContext,
    OverdueReminderContext,
    PaymentReminderContext,
    SystemNotificationContext,
    TransportTestContext,
)
from rent_notifier.models.notification import NotificationKind
from rent_notifier.models.settings import BillingCycleConfig, BillingRecord, NotificationConfig
from rent_notifier.rules.dates import (
    days_since_due,
    days_until_due,
    last_due_date,
    next_due_date,
    parse_year_month,
    previous_year_month,
)

logger = get_logger(__name__)

OVERDUE_WINDOW_DAYS = 7


class BillingRecordSource(Protocol):
    """Anything that can look up a monthly billing record."""

    def get_billing_record(self, year_month: str) -> BillingRecord | None: ...


class RuleEvaluator:
    """Evaluates notification rules for a calendar day.

    Attributes:
        billing_records: Lookup for monthly records (monthly bill rule).
    """

    def __init__(self, billing_records: BillingRecordSource | None = None) -> None:
        self.billing_records = billing_records

    # =========================================================================
    # Scheduled rules
    # =========================================================================
    def evaluate_daily(
        self,
        today: date,
        billing: BillingCycleConfig,
        notifications: NotificationConfig,
    ) -> list[DueNotification]:
        """Payment and overdue reminders due today."""
        due: list[DueNotification] = []

        if notifications.payment_reminder_enabled:
            remaining = days_until_due(billing.due_day, today)
            if remaining == notifications.payment_reminder_lead_days:
                due.append(self._payment_reminder(today, billing))
            else:
                logger.debug(
                    f"Payment reminder not due: {remaining} days left, "
                    f"lead={notifications.payment_reminder_lead_days}"
                )

        if notifications.overdue_reminder_enabled:
            overdue = days_since_due(billing.due_day, today)
            if 1 <= overdue <= OVERDUE_WINDOW_DAYS:
                due.append(
                    DueNotification(
                        kind=NotificationKind.OVERDUE_REMINDER,
                        context=OverdueReminderContext(
                            overdue_days=overdue,
                            due_date=last_due_date(billing.due_day, today),
                            monthly_amount=billing.monthly_amount,
                        ),
                        idempotency_key=f"{NotificationKind.OVERDUE_REMINDER.value}:{today.isoformat()}",
                    )
                )

        logger.info(f"Daily rules for {today.isoformat()}: {[d.kind.value for d in due] or 'none due'}")
        return due

    def evaluate_monthly(
        self,
        today: date,
        billing: BillingCycleConfig,
        notifications: NotificationConfig,
    ) -> list[DueNotification]:
        """Monthly bill for the previous calendar month, if its record exists."""
        if not notifications.monthly_bill_enabled:
            return []

        year_month = previous_year_month(today)
        record = self._lookup(year_month)
        if record is None:
            logger.info(f"No billing record for {year_month}, monthly bill not due")
            return []

        return [self._monthly_bill(year_month, record, billing)]

    def evaluate(
        self,
        today: date,
        billing: BillingCycleConfig,
        notifications: NotificationConfig,
    ) -> list[DueNotification]:
        """All scheduled rules for today."""
        return self.evaluate_daily(today, billing, notifications) + self.evaluate_monthly(
            today, billing, notifications
        )

    # =========================================================================
    # Out-of-band entry point
    # =========================================================================
    def evaluate_now(
        self,
        kind: NotificationKind,
        today: date,
        billing: BillingCycleConfig | None = None,
        **params: Any,
    ) -> DueNotification:
        """Build a notification of the given kind immediately, skipping date rules.

        Args:
            kind: Notification kind to build.
            today: Reference date.
            billing: Billing cycle (required for reminders and bills).
            **params: Kind-specific parameters: message/details for system
                notifications, year_month for monthly bills, tested_at for
                test messages.

        Raises:
            ConfigurationInvalidError: If required parameters are missing.
            RecordNotFoundError: If the requested monthly record does not exist.
        """
        if kind == NotificationKind.SYSTEM_NOTIFICATION:
            if not params.get("message"):
                raise ConfigurationInvalidError("System notification requires a message", field="message")
            context = SystemNotificationContext(message=params["message"], details=params.get("details"))
            return DueNotification(kind=kind, context=context)

        if kind == NotificationKind.TEST_MESSAGE:
            tested_at = params.get("tested_at") or datetime.now(timezone.utc)
            return DueNotification(kind=kind, context=TransportTestContext(tested_at=tested_at))

        if billing is None:
            raise ConfigurationInvalidError(f"{kind.value} requires the billing cycle settings", field="due_day")

        if kind == NotificationKind.PAYMENT_REMINDER:
            notification = self._payment_reminder(today, billing)
            notification.idempotency_key = None
            return notification

        if kind == NotificationKind.OVERDUE_REMINDER:
            return DueNotification(
                kind=kind,
                context=OverdueReminderContext(
                    overdue_days=max(days_since_due(billing.due_day, today), 1),
                    due_date=last_due_date(billing.due_day, today),
                    monthly_amount=billing.monthly_amount,
                ),
            )

        year_month = params.get("year_month") or previous_year_month(today)
        parse_year_month(year_month)
        record = self._lookup(year_month)
        if record is None:
            raise RecordNotFoundError(f"No billing record for {year_month}", year_month=year_month)
        notification = self._monthly_bill(year_month, record, billing)
        notification.idempotency_key = None
        return notification

    # =========================================================================
    # Builders
    # =========================================================================
    def _lookup(self, year_month: str) -> BillingRecord | None:
        if self.billing_records is None:
            return None
        return self.billing_records.get_billing_record(year_month)

    @staticmethod
    def _payment_reminder(today: date, billing: BillingCycleConfig) -> DueNotification:
        due_date = next_due_date(billing.due_day, today)
        return DueNotification(
            kind=NotificationKind.PAYMENT_REMINDER,
            context=PaymentReminderContext(
                due_day=billing.due_day,
                days_until_due=(due_date - today).days,
                due_date=due_date,
                monthly_amount=billing.monthly_amount,
            ),
            idempotency_key=f"{NotificationKind.PAYMENT_REMINDER.value}:{due_date.isoformat()}",
        )

    @staticmethod
    def _monthly_bill(year_month: str, record: BillingRecord, billing: BillingCycleConfig) -> DueNotification:
        return DueNotification(
            kind=NotificationKind.MONTHLY_BILL,
            context=MonthlyBillContext(
                year_month=year_month,
                record=record,
                monthly_amount=billing.monthly_amount,
                electricity_rate=billing.electricity_rate,
                cold_water_rate=billing.cold_water_rate,
                hot_water_rate=billing.hot_water_rate,
            ),
            idempotency_key=f"{NotificationKind.MONTHLY_BILL.value}:{year_month}",
        )
