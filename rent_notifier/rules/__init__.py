"""Rules module for the rent notifier.

Contains the due-day date arithmetic and the notification rule evaluator.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from rent_notifier.rules.dates import (
    days_since_due,
    days_until_due,
    last_due_date,
    next_due_date,
    previous_year_month,
)
from rent_notifier.rules.evaluator import BillingRecordSource, RuleEvaluator

__all__ = [
    "days_until_due",
    "days_since_due",
    "next_due_date",
    "last_due_date",
    "previous_year_month",
    "RuleEvaluator",
    "BillingRecordSource",
]
