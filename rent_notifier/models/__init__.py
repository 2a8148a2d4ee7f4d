"""Models module for the rent notifier.

Defines Pydantic v2 data models for settings, notification contexts,
delivery records and SMTP provider presets.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from rent_notifier.models.context import (
    CONTEXT_TYPES,
    AnyNotificationContext,
    DueNotification,
    MonthlyBillContext,
    NotificationContext,
    OverdueReminderContext,
    PaymentReminderContext,
    SystemNotificationContext,
    TransportTestContext,
)
from rent_notifier.models.notification import (
    DeliveryOutcome,
    DeliveryRecord,
    HistoryPage,
    NotificationKind,
    RenderedMessage,
    TransportErrorCategory,
)
from rent_notifier.models.providers import MAIL_PROVIDERS, MailProvider, detect_provider
from rent_notifier.models.results import (
    ActionResult,
    DailyTickCounts,
    DailyTickResult,
    MonthlyTickCounts,
    MonthlyTickResult,
    ServiceStatus,
)
from rent_notifier.models.settings import (
    BillingCycleConfig,
    BillingRecord,
    NotificationConfig,
    RecipientSettings,
    TransportConfig,
    TransportConfigView,
)

__all__ = [
    # Enums
    "NotificationKind",
    "DeliveryOutcome",
    "TransportErrorCategory",
    # Ledger
    "DeliveryRecord",
    "HistoryPage",
    "RenderedMessage",
    # Settings
    "NotificationConfig",
    "BillingCycleConfig",
    "TransportConfig",
    "TransportConfigView",
    "BillingRecord",
    "RecipientSettings",
    # Context models
    "NotificationContext",
    "PaymentReminderContext",
    "OverdueReminderContext",
    "MonthlyBillContext",
    "SystemNotificationContext",
    "TransportTestContext",
    "AnyNotificationContext",
    "CONTEXT_TYPES",
    "DueNotification",
    # Results
    "DailyTickCounts",
    "DailyTickResult",
    "MonthlyTickCounts",
    "MonthlyTickResult",
    "ActionResult",
    "ServiceStatus",
    # Providers
    "MailProvider",
    "MAIL_PROVIDERS",
    "detect_provider",
]
