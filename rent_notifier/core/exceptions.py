"""Custom exceptions for the rent notifier.

Defines the error taxonomy shared by the rule evaluator, the delivery
engine, the storage layer and the scheduler trigger, so callers can tell
"not configured" apart from "configured but broken".

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rent_notifier.models.notification import TransportErrorCategory


class NotifierError(Exception):
    """Base exception for all rent notifier errors.

    Example:
        try:
            scheduler.send_test_message_now()
        except NotifierError as e:
            logger.error(f"Notifier error: {e}")
    """

    pass


class ConfigurationMissingError(NotifierError):
    """Raised when transport settings or the recipient address are absent.

    Not fatal: the scheduler turns it into a "skipped" tick result.

    Example:
        raise ConfigurationMissingError("Mail transport is not configured")
    """

    pass


class ConfigurationInvalidError(NotifierError):
    """Raised when a configuration value is malformed.

    Rejected at validation time, before anything is persisted.

    Attributes:
        field (str, optional): Name of the offending field.
    """

    def __init__(self, message: str, field: str | None = None):
        """Initialize configuration error.

        Args:
            message: Error description.
            field: Optional name of the invalid field.
        """
        super().__init__(message)
        self.field = field


class TransportConnectionError(NotifierError):
    """Raised for SMTP connection, authentication or delivery failures.

    Every low-level failure is normalized into one category so it can be
    stored on the delivery record.

    Attributes:
        message (str): Description of the failure.
        category (TransportErrorCategory): Normalized failure category.

    Example:
        raise TransportConnectionError(
            "Connection timeout to smtp.qq.com:465",
            category=TransportErrorCategory.TIMEOUT,
        )
    """

    def __init__(self, message: str, category: TransportErrorCategory | None = None):
        """Initialize transport error.

        Args:
            message: Error description.
            category: Normalized category (defaults to UNKNOWN).
        """
        from rent_notifier.models.notification import TransportErrorCategory

        super().__init__(message)
        self.category = category or TransportErrorCategory.UNKNOWN

    @property
    def is_transient(self) -> bool:
        """Whether the next scheduler tick may succeed without a config change."""
        return self.category.is_transient


class RecordNotFoundError(NotifierError):
    """Raised when the billing record for a month does not exist.

    Attributes:
        year_month (str, optional): Requested "YYYY-MM" key.
    """

    def __init__(self, message: str, year_month: str | None = None):
        super().__init__(message)
        self.year_month = year_month


class InvalidTransitionError(NotifierError):
    """Raised on a delivery outcome transition other than pending -> sent/failed."""

    pass


class LedgerError(NotifierError):
    """Raised for storage failures in the ledger or the settings store.

    Attributes:
        record_id (str, optional): ID of the affected record.
    """

    def __init__(self, message: str, record_id: str | None = None):
        """Initialize storage error.

        Args:
            message: Error description.
            record_id: Optional ID of affected record.
        """
        super().__init__(message)
        self.record_id = record_id


class TemplateRenderError(NotifierError):
    """Raised when a notification message cannot be rendered.

    Attributes:
        template_name (str, optional): Name of the template that failed.
    """

    def __init__(self, message: str, template_name: str | None = None):
        """Initialize template render error.

        Args:
            message: Error description.
            template_name: Optional name of the template that failed.
        """
        super().__init__(message)
        self.template_name = template_name
