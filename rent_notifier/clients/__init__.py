"""Clients module for the rent notifier.

Contains integrations with external services like SMTP servers.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from rent_notifier.clients.smtp import SMTPClient, classify_error

__all__ = ["SMTPClient", "classify_error"]
