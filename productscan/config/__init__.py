"""
==============================================================================
Configuration Package
==============================================================================

Environment-driven settings for the verification scanner.

Usage:
------
    from productscan.config import get_settings

    settings = get_settings()
    print(settings.status_reset_seconds)

==============================================================================
"""

from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
