"""Notification context models.

Defines the parameters each notification kind is rendered with, ensuring
type-safe context dictionaries for Jinja2 rendering, and the
DueNotification the rule evaluator hands to the scheduler.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Union

from pydantic import BaseModel, Field

from rent_notifier.models.notification import NotificationKind
from rent_notifier.models.settings import BillingRecord


class NotificationContext(BaseModel):
    """Base context model for message templates.

    Attributes:
        recipient_name: Optional greeting name.
    """

    recipient_name: str | None = Field(default=None, description="Recipient name")


class PaymentReminderContext(NotificationContext):
    """Context for the upcoming payment reminder.

    Attributes:
        due_day: Configured day of month.
        days_until_due: Days left until the due date (the lead days).
        due_date: Next due date.
        monthly_amount: Rent owed.
    """

    due_day: int = Field(..., ge=1, le=31)
    days_until_due: int = Field(..., ge=0, le=31)
    due_date: date
    monthly_amount: Decimal = Field(..., ge=0)


class OverdueReminderContext(NotificationContext):
    """Context for the overdue reminder.

    Attributes:
        overdue_days: Days since the due date (1-7 when scheduled).
        due_date: The missed due date.
        monthly_amount: Rent owed.
    """

    overdue_days: int = Field(..., ge=1)
    due_date: date
    monthly_amount: Decimal = Field(..., ge=0)


class MonthlyBillContext(NotificationContext):
    """Context for the monthly statement.

    Attributes:
        year_month: Billing month, YYYY-MM.
        record: Usage and cost figures for that month.
        monthly_amount: Rent line on the statement.
        electricity_rate: Unit price per kWh.
        cold_water_rate: Unit price per cubic metre.
        hot_water_rate: Unit price per cubic metre.
    """

    year_month: str
    record: BillingRecord
    monthly_amount: Decimal = Field(..., ge=0)
    electricity_rate: Decimal = Field(default=Decimal("0"), ge=0)
    cold_water_rate: Decimal = Field(default=Decimal("0"), ge=0)
    hot_water_rate: Decimal = Field(default=Decimal("0"), ge=0)

    @property
    def total_water_usage(self) -> Decimal:
        return self.record.cold_water_usage + self.record.hot_water_usage


class SystemNotificationContext(NotificationContext):
    """Context for a free-form system notification."""

    message: str = Field(..., min_length=1, max_length=2000)
    details: str | None = Field(default=None, max_length=5000)


class TransportTestContext(NotificationContext):
    """Context for the transport test message."""

    tested_at: datetime


AnyNotificationContext = Union[
    PaymentReminderContext,
    OverdueReminderContext,
    MonthlyBillContext,
    SystemNotificationContext,
    TransportTestContext,
]

CONTEXT_TYPES: dict[NotificationKind, type[NotificationContext]] = {
    NotificationKind.PAYMENT_REMINDER: PaymentReminderContext,
    NotificationKind.OVERDUE_REMINDER: OverdueReminderContext,
    NotificationKind.MONTHLY_BILL: MonthlyBillContext,
    NotificationKind.SYSTEM_NOTIFICATION: SystemNotificationContext,
    NotificationKind.TEST_MESSAGE: TransportTestContext,
}


class DueNotification(BaseModel):
    """A notification the rule evaluator decided is due.

    Attributes:
        kind: Notification kind.
        context: Parameters to render the message with.
        idempotency_key: "(kind):(cycle)" key, None for manual sends.
    """

    kind: NotificationKind
    context: AnyNotificationContext
    idempotency_key: str | None = None
