"""
Shared, single-owner session state handed to the authenticator and refresh loop.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from synology_ds.models.session import SessionRecord
from synology_ds.models.task import Task


@dataclass(frozen=True)
class StatusLine:
    """A short, human-readable outcome for the user-visible status channel."""

    text: str
    tone: str = "info"  # info | success | warning | error


StatusCallback = Callable[[StatusLine], None]


@dataclass
class SessionState:
    """
    In-memory view of one connected host.

    ``record`` mirrors the persisted SessionRecord. It is replaced only by the
    authenticator's transitions and the refresh loop's destination capture.
    ``tasks`` is the latest snapshot and is always replaced, never merged.
    """

    host: str
    host_key: str
    record: SessionRecord
    tasks: list[Task] = field(default_factory=list)
    last_refresh: Optional[datetime] = None
    status: Optional[StatusLine] = None

    @property
    def account_name(self) -> Optional[str]:
        return self.record.account_name

    @property
    def default_destination(self) -> Optional[str]:
        return self.record.default_destination
