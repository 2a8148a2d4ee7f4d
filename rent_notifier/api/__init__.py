"""API module for the rent notifier.

Contains the FastAPI application and its request/response schemas.
Import rent_notifier.api.main for the app itself.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""
