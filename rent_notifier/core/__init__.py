"""Core module for the rent notifier.

Provides foundational utilities, exceptions, and logging configuration.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from rent_notifier.core.exceptions import (
    ConfigurationInvalidError,
    ConfigurationMissingError,
    InvalidTransitionError,
    LedgerError,
    NotifierError,
    RecordNotFoundError,
    TemplateRenderError,
    TransportConnectionError,
)
from rent_notifier.core.logger import (
    get_logger,
    log_context,
    mask_secret,
    setup_logging,
)

__all__ = [
    # Exceptions
    "NotifierError",
    "ConfigurationMissingError",
    "ConfigurationInvalidError",
    "TransportConnectionError",
    "RecordNotFoundError",
    "InvalidTransitionError",
    "LedgerError",
    "TemplateRenderError",
    # Logging
    "get_logger",
    "setup_logging",
    "log_context",
    "mask_secret",
]
