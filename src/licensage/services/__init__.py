"""Scanning, aggregation and policy evaluation services."""
