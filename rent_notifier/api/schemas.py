"""API request and response schemas.

Pydantic models for API validation and serialization. JSON keys are
camelCase; snake_case is accepted on input as well.

Version: 2.0.0
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from rent_notifier.models.notification import DeliveryRecord, HistoryPage
from rent_notifier.models.providers import MailProvider
from rent_notifier.models.results import CamelModel


class SystemNotificationRequest(CamelModel):
    """Request model for POST /notifications/system."""

    message: str = Field(..., min_length=1, max_length=2000, description="Notification text")
    details: str | None = Field(default=None, max_length=5000, description="Optional details")


class MonthlyBillRequest(CamelModel):
    """Request model for POST /notifications/monthly-bill."""

    year_month: str | None = Field(
        default=None,
        description="Billing month as YYYY-MM (default: previous month)",
    )


class RecipientRequest(CamelModel):
    """Request model for PUT /config/recipient.

    Validated by the settings store so a malformed address is a 400.
    """

    email: str = Field(..., min_length=1, max_length=255, description="Recipient address")


class RecipientResponse(CamelModel):
    """Response model for GET/PUT /config/recipient."""

    email: str | None = Field(description="Recipient address, null when unset")


class HistoryResponse(CamelModel):
    """Response model for GET /history."""

    logs: list[DeliveryRecord] = Field(description="Delivery records, newest first")
    total: int = Field(description="Total number of records")
    total_pages: int = Field(description="Number of pages at the requested size")

    @classmethod
    def from_page(cls, page: HistoryPage) -> HistoryResponse:
        return cls(logs=page.records, total=page.total, total_pages=page.total_pages)


class ProvidersResponse(CamelModel):
    """Response model for GET /config/providers."""

    providers: list[MailProvider] = Field(description="Known SMTP presets")
    detected: MailProvider | None = Field(default=None, description="Preset matching ?email=")


class HealthResponse(CamelModel):
    """Response model for GET /health endpoint."""

    status: str = Field(description="Overall service status")
    db: str = Field(description="Storage backend status")
    transport: str = Field(description="Mail transport configuration status")
    version: str = Field(description="Service version")
    timestamp: datetime = Field(default_factory=lambda: datetime.now())


class ErrorResponse(CamelModel):
    """Standard error response model."""

    detail: str = Field(description="Error description")
