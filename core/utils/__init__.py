"""
Core Utilities Package

Modules:
    - time: Timestamp conversion utilities
"""

from core.utils.time import to_utc_datetime

__all__ = ["to_utc_datetime"]
