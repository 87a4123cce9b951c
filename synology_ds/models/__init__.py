"""
Data Models Layer.

This package contains the data structures shared across the application:
client configuration, the cached per-host session record and the task
snapshot returned by Download Station.
"""

from .config import ClientConfig
from .session import Identity, SessionRecord
from .task import Task, TaskOperation, TaskStatus

__all__ = ["ClientConfig", "Identity", "SessionRecord", "Task", "TaskOperation", "TaskStatus"]
