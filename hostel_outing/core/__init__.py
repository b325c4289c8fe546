"""
Core infrastructure: configuration, logging and exceptions.
"""

from hostel_outing.core.config import Settings, get_settings, settings

__all__ = [
    "Settings",
    "get_settings",
    "settings",
]
