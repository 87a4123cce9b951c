"""
Storage Layer.

This package handles all data persistence: the INI configuration file and the
host-keyed session cache.
"""

from .config_manager import ConfigManager
from .session_store import SessionStore

__all__ = ["ConfigManager", "SessionStore"]
