"""Rent Notifier - Rent and utility notification scheduling and delivery.

Decides, once a day and once a month, which notifications a tenant is due
(payment reminder, overdue reminder, monthly statement), renders them and
delivers them by SMTP, recording every attempt in a paginated history.

Architecture:
    - Pure date arithmetic and rule evaluation (no I/O)
    - Jinja2 message renderer (HTML + plain text)
    - Delivery engine owning the SMTP transport handle
    - PostgreSQL (or in-memory) settings store and delivery ledger
    - Scheduler trigger called by an external cron (HTTP or CLI)

Modules:
    - core: Exceptions, logger, base utilities
    - config: Pydantic v2 settings
    - models: Data models (settings, contexts, delivery records)
    - rules: Due-day arithmetic and notification rules
    - templates: Message rendering (Jinja2)
    - clients: External integrations (SMTP)
    - delivery: Delivery engine
    - database: Settings store and delivery ledger
    - scheduler: Daily/monthly ticks and manual sends
    - api: FastAPI application

Usage:
    from rent_notifier.scheduler import create_scheduler

    scheduler, storage = create_scheduler()
    result = scheduler.run_daily()
    print(result.model_dump_json(by_alias=True))

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

__version__ = "1.0.0"

# Clients
from rent_notifier.clients import SMTPClient

# Configuration
from rent_notifier.config import NotifierConfig, get_settings

# Core utilities
from rent_notifier.core import (
    ConfigurationInvalidError,
    ConfigurationMissingError,
    InvalidTransitionError,
    LedgerError,
    NotifierError,
    RecordNotFoundError,
    TemplateRenderError,
    TransportConnectionError,
    get_logger,
)

# Database
from rent_notifier.database import DeliveryLedger, SettingsStore, create_storage

# Delivery
from rent_notifier.delivery import DeliveryEngine

# Models
from rent_notifier.models import (
    BillingCycleConfig,
    BillingRecord,
    DeliveryOutcome,
    DeliveryRecord,
    NotificationConfig,
    NotificationKind,
    TransportConfig,
    TransportErrorCategory,
)

# Rules
from rent_notifier.rules import RuleEvaluator

# Scheduler
from rent_notifier.scheduler import NotificationScheduler, create_scheduler

# Templates
from rent_notifier.templates import MessageRenderer

__all__ = [
    # Version
    "__version__",
    # Core exceptions
    "NotifierError",
    "ConfigurationMissingError",
    "ConfigurationInvalidError",
    "TransportConnectionError",
    "RecordNotFoundError",
    "InvalidTransitionError",
    "LedgerError",
    "TemplateRenderError",
    "get_logger",
    # Configuration
    "NotifierConfig",
    "get_settings",
    # Models
    "NotificationKind",
    "DeliveryOutcome",
    "TransportErrorCategory",
    "DeliveryRecord",
    "NotificationConfig",
    "BillingCycleConfig",
    "BillingRecord",
    "TransportConfig",
    # Components
    "RuleEvaluator",
    "MessageRenderer",
    "SMTPClient",
    "DeliveryEngine",
    "SettingsStore",
    "DeliveryLedger",
    "create_storage",
    # Scheduler
    "NotificationScheduler",
    "create_scheduler",
]
