"""Notification and delivery data models.

Defines the notification kinds, delivery outcomes, transport error
categories and the delivery record stored in the history ledger.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rent_notifier.core.exceptions import InvalidTransitionError


class NotificationKind(str, Enum):
    """Notification kind enumeration.

    Attributes:
        PAYMENT_REMINDER: Rent is due in the configured number of days.
        OVERDUE_REMINDER: Rent is 1-7 days past the due day.
        MONTHLY_BILL: Utility and rent statement for the previous month.
        SYSTEM_NOTIFICATION: Free-form message triggered out-of-band.
        TEST_MESSAGE: Sent manually to verify the transport settings.
    """

    PAYMENT_REMINDER = "payment_reminder"
    OVERDUE_REMINDER = "overdue_reminder"
    MONTHLY_BILL = "monthly_bill"
    SYSTEM_NOTIFICATION = "system_notification"
    TEST_MESSAGE = "test_message"


class DeliveryOutcome(str, Enum):
    """Delivery outcome enumeration.

    Attributes:
        PENDING: Record created, transport call not finished yet.
        SENT: Accepted by the SMTP server.
        FAILED: Transport failure, see error_detail.
        RETRYING: Reserved for external retry orchestration; never produced.
    """

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    RETRYING = "retrying"

    @property
    def is_terminal(self) -> bool:
        return self in (DeliveryOutcome.SENT, DeliveryOutcome.FAILED)


class TransportErrorCategory(str, Enum):
    """Normalized transport failure categories."""

    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    TIMEOUT = "timeout"
    RECIPIENT_REJECTED = "recipient_rejected"
    MESSAGE_REJECTED = "message_rejected"
    PROTOCOL = "protocol"
    UNKNOWN = "unknown"

    @property
    def description(self) -> str:
        """Human-readable hint for the category."""
        return _CATEGORY_DESCRIPTIONS[self]

    @property
    def is_transient(self) -> bool:
        """Whether a later attempt may succeed without changing settings."""
        return self in (TransportErrorCategory.CONNECTION, TransportErrorCategory.TIMEOUT)


_CATEGORY_DESCRIPTIONS = {
    TransportErrorCategory.CONNECTION: "Cannot reach the mail server, check host and port",
    TransportErrorCategory.AUTHENTICATION: "Username or password rejected by the mail server",
    TransportErrorCategory.TIMEOUT: "Connection timed out, check the network",
    TransportErrorCategory.RECIPIENT_REJECTED: "Recipient address rejected by the mail server",
    TransportErrorCategory.MESSAGE_REJECTED: "Message or sender rejected by the mail server",
    TransportErrorCategory.PROTOCOL: "SMTP protocol error, check the encryption settings",
    TransportErrorCategory.UNKNOWN: "Delivery failed, check the configuration and retry",
}

# Valid outcome transitions; terminal outcomes have none.
_TRANSITIONS: dict[DeliveryOutcome, frozenset[DeliveryOutcome]] = {
    DeliveryOutcome.PENDING: frozenset({DeliveryOutcome.SENT, DeliveryOutcome.FAILED}),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryRecord(BaseModel):
    """One delivery attempt stored in the history ledger.

    Created in PENDING before the transport call and transitioned exactly
    once to SENT or FAILED. The same object (same id) is updated in place.

    Attributes:
        id: Unique record ID (uuid4 hex).
        recipient: Recipient email address.
        subject: Message subject line.
        kind: Notification kind.
        outcome: Current delivery outcome.
        error_detail: Normalized error message when FAILED.
        error_category: Normalized error category when FAILED.
        idempotency_key: "(kind):(cycle)" key for scheduler sends.
        attempted_at: When the attempt started (UTC).
    """

    model_config = ConfigDict(
        from_attributes=True, validate_assignment=True, alias_generator=to_camel, populate_by_name=True
    )

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Record ID")
    recipient: str = Field(..., description="Recipient email address")
    subject: str = Field(..., max_length=500, description="Message subject")
    kind: NotificationKind = Field(..., description="Notification kind")
    outcome: DeliveryOutcome = Field(
        default=DeliveryOutcome.PENDING, description="Delivery outcome"
    )
    error_detail: str | None = Field(default=None, description="Failure description")
    error_category: TransportErrorCategory | None = Field(
        default=None, description="Normalized failure category"
    )
    idempotency_key: str | None = Field(
        default=None, max_length=200, description="Duplicate-avoidance key"
    )
    attempted_at: datetime = Field(default_factory=_utcnow, description="Attempt timestamp")

    def _transition(self, outcome: DeliveryOutcome) -> None:
        allowed = _TRANSITIONS.get(self.outcome, frozenset())
        if outcome not in allowed:
            raise InvalidTransitionError(
                f"Delivery record {self.id}: {self.outcome.value} -> {outcome.value} "
                f"is not a valid transition"
            )
        self.outcome = outcome

    def mark_sent(self) -> DeliveryRecord:
        """Transition PENDING -> SENT in place."""
        self._transition(DeliveryOutcome.SENT)
        return self

    def mark_failed(
        self, error_detail: str, category: TransportErrorCategory = TransportErrorCategory.UNKNOWN
    ) -> DeliveryRecord:
        """Transition PENDING -> FAILED in place, recording the error."""
        self._transition(DeliveryOutcome.FAILED)
        self.error_detail = error_detail[:1000]
        self.error_category = category
        return self


class HistoryPage(BaseModel):
    """One page of ledger history, newest first."""

    records: list[DeliveryRecord] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)

    @classmethod
    def build(cls, records: list[DeliveryRecord], total: int, page_size: int) -> HistoryPage:
        return cls(
            records=records,
            total=total,
            total_pages=math.ceil(total / page_size) if total else 0,
        )


class RenderedMessage(BaseModel):
    """Rendered subject and bodies for one notification."""

    subject: str = Field(..., min_length=1, max_length=500)
    body_html: str = Field(..., min_length=1)
    body_text: str = Field(default="")
