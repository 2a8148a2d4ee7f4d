"""User-managed settings models.

Defines the singleton configuration rows (notification toggles, billing
cycle, mail transport) and the monthly billing record the monthly bill
is rendered from.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from __future__ import annotations

import re
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

_YEAR_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class NotificationConfig(BaseModel):
    """Notification toggles and parameters.

    Attributes:
        payment_reminder_enabled: Send a reminder before the due day.
        payment_reminder_lead_days: Days before the due day the reminder fires (1-30).
        overdue_reminder_enabled: Send daily reminders 1-7 days after the due day.
        monthly_bill_enabled: Send the previous month's statement.
        system_notification_enabled: Allow out-of-band system notifications.
    """

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    payment_reminder_enabled: bool = Field(default=True)
    payment_reminder_lead_days: int = Field(default=3, ge=1, le=30)
    overdue_reminder_enabled: bool = Field(default=True)
    monthly_bill_enabled: bool = Field(default=True)
    system_notification_enabled: bool = Field(default=True)


class BillingCycleConfig(BaseModel):
    """Recurring monthly billing cycle.

    Attributes:
        due_day: Day of month the rent is due (1-31, clamped to short months).
        monthly_amount: Monthly rent.
        electricity_rate: Price per kWh shown on the monthly bill.
        cold_water_rate: Price per cubic metre of cold water.
        hot_water_rate: Price per cubic metre of hot water.
    """

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    due_day: int = Field(..., ge=1, le=31)
    monthly_amount: Decimal = Field(..., ge=0, decimal_places=2)
    electricity_rate: Decimal = Field(default=Decimal("0"), ge=0)
    cold_water_rate: Decimal = Field(default=Decimal("0"), ge=0)
    hot_water_rate: Decimal = Field(default=Decimal("0"), ge=0)


class TransportConfig(BaseModel):
    """Outbound SMTP transport settings.

    Validates and stores the connection parameters and sender identity.
    The secret is write-only: use to_view() for anything sent back out.

    Attributes:
        host: SMTP server hostname.
        port: SMTP server port (1-65535).
        use_encryption: Implicit TLS (SMTPS) when true, STARTTLS when offered otherwise.
        username: SMTP authentication username.
        secret: SMTP password or provider authorization code.
        sender_name: Display name in the From header.
        sender_address: Sender email address.
    """

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    host: str = Field(..., min_length=1, max_length=255)
    port: int = Field(..., ge=1, le=65535)
    use_encryption: bool = Field(default=False)
    username: str = Field(..., min_length=1)
    secret: str = Field(..., min_length=1)
    sender_name: str = Field(default="Rent Tracker", min_length=1, max_length=100)
    sender_address: EmailStr

    @field_validator("host", "username", "sender_name")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject whitespace-only values.

        Raises:
            ValueError: If the value is blank.
        """
        if not v.strip():
            raise ValueError("value cannot be blank")
        return v.strip()

    @field_validator("secret")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        """Validate and clean the SMTP secret.

        Provider authorization codes are displayed with spaces for
        readability but must be used without them.
        """
        cleaned = v.replace(" ", "")
        if not cleaned:
            raise ValueError("SMTP secret cannot be empty")
        return cleaned

    def to_view(self) -> TransportConfigView:
        """Return the config without its secret."""
        return TransportConfigView(
            host=self.host,
            port=self.port,
            use_encryption=self.use_encryption,
            username=self.username,
            sender_name=self.sender_name,
            sender_address=self.sender_address,
            has_secret=bool(self.secret),
        )


class TransportConfigView(BaseModel):
    """Transport settings as exposed to clients (secret omitted)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    host: str
    port: int
    use_encryption: bool
    username: str
    sender_name: str
    sender_address: str
    has_secret: bool


class BillingRecord(BaseModel):
    """Monthly utility and rent record, keyed by "YYYY-MM".

    Owned by the tracking app; the notifier only reads it.
    """

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    year_month: str = Field(..., description="Billing month, YYYY-MM")
    electricity_usage: Decimal = Field(default=Decimal("0"), ge=0)
    electricity_cost: Decimal = Field(default=Decimal("0"), ge=0)
    cold_water_usage: Decimal = Field(default=Decimal("0"), ge=0)
    cold_water_cost: Decimal = Field(default=Decimal("0"), ge=0)
    hot_water_usage: Decimal = Field(default=Decimal("0"), ge=0)
    hot_water_cost: Decimal = Field(default=Decimal("0"), ge=0)
    total_amount: Decimal = Field(..., ge=0)
    is_paid: bool = Field(default=False)

    @field_validator("year_month")
    @classmethod
    def validate_year_month(cls, v: str) -> str:
        if not _YEAR_MONTH_RE.match(v):
            raise ValueError("year_month must be formatted as YYYY-MM")
        return v


class RecipientSettings(BaseModel):
    """The single address every notification is sent to."""

    email: EmailStr
