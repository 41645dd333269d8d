"""
Core Components

Configuration and logging setup.
"""

from tabquery.core.config import settings, Settings, BackendConfig
from tabquery.core.logging import configure_logging

__all__ = [
    "settings",
    "Settings",
    "BackendConfig",
    "configure_logging",
]
