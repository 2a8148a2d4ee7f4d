"""Operational scripts for the rent notifier."""
