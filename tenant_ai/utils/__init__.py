"""
Utils Module
"""

from .logging_setup import configure_logging
from .time_utils import as_utc, days_between, hours_between, utcnow
from .user_locks import UserLocks

__all__ = [
    "configure_logging",
    "as_utc",
    "days_between",
    "hours_between",
    "utcnow",
    "UserLocks",
]
