"""Core application configuration and utilities.

This package contains core functionality including:
- Configuration management (config.py)
- Logging setup (logging.py)
- Common exceptions (exceptions.py)
"""

from boardflow.core.config import settings

__all__ = [
    "settings",
]
