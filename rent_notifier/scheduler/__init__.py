"""Scheduler module for the rent notifier.

Contains the daily and monthly ticks and the manual send actions.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from rent_notifier.scheduler.tick import NotificationScheduler, create_scheduler

__all__ = ["NotificationScheduler", "create_scheduler"]
