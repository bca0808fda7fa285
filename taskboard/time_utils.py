"""
Time utilities for the Taskboard application.

This module provides a single source of truth for "now", so every timestamp
written by the models and services comes from the same clock.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Get current UTC time.

    Returns:
        timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)
