"""Scheduler and action result models.

Serialized with camelCase keys (paymentReminders, yearMonth, ...) for
the cron callers and the HTTP API.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rent_notifier.models.notification import DeliveryRecord
from rent_notifier.models.settings import TransportConfigView


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DailyTickCounts(CamelModel):
    """Counters reported by the daily tick."""

    payment_reminders: int = Field(default=0, ge=0, le=1)
    overdue_reminders: int = Field(default=0, ge=0, le=1)
    errors: list[str] = Field(default_factory=list)


class MonthlyTickCounts(CamelModel):
    """Counters reported by the monthly tick."""

    monthly_bills: int = Field(default=0, ge=0, le=1)
    errors: list[str] = Field(default_factory=list)


class DailyTickResult(CamelModel):
    """Outcome of one daily tick.

    A skipped tick is success=True with zero actions; success=False only
    when the tick itself failed unexpectedly.
    """

    success: bool
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)
    results: DailyTickCounts = Field(default_factory=DailyTickCounts)
    error: str | None = None


class MonthlyTickResult(CamelModel):
    """Outcome of one monthly tick."""

    success: bool
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)
    year_month: str | None = None
    results: MonthlyTickCounts = Field(default_factory=MonthlyTickCounts)
    error: str | None = None


class ActionResult(CamelModel):
    """Outcome of a manual send or configuration action."""

    success: bool
    message: str
    record: DeliveryRecord | None = Field(default=None, exclude=True)


class ServiceStatus(CamelModel):
    """Notifier readiness as shown on the settings page."""

    has_transport_config: bool = False
    has_recipient: bool = False
    is_configured: bool = False
    can_connect: bool = False
    transport: TransportConfigView | None = None
    recipient: str | None = None
    ledger_stats: dict[str, int] = Field(default_factory=dict)
    error: str | None = None
