"""Attendance windows: signed rotating codes, exactly-once redemption, manual reconciliation."""

__version__ = "0.1.0"
