"""Delivery module for the rent notifier.

Contains the delivery engine and its transport handle.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from rent_notifier.delivery.engine import DeliveryEngine, TransportHandle

__all__ = ["DeliveryEngine", "TransportHandle"]
