"""
Impact analytics engine.

Turns operational records (projects, users, transactions, progress updates,
alerts) into time-bucketed aggregates, derived metrics, trend forecasts,
per-entity predictions and persisted report documents.
"""

__version__ = "0.1.0"
