"""
dictate-common: Shared library for the Dictate audio services.

Provides configuration management, structured logging setup, and
Prometheus metrics definitions used by the VAD preprocessing service.
"""

from dictate_common.config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
