"""Configuration module for the rent notifier.

Loads and validates service settings from environment variables or .env file.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from rent_notifier.config.settings import NotifierConfig, get_settings

__all__ = ["NotifierConfig", "get_settings"]
