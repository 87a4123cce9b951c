"""
Models for authentication state: the persisted per-host session record and the
in-memory login identity.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SessionRecord(BaseModel):
    """
    Non-secret session state cached for a single host.

    Unknown keys are dropped on load, so a secret that ever found its way into
    the file is never written back.
    """

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    host_key: str
    session_token: Optional[str] = None
    account_name: Optional[str] = None
    default_destination: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def has_token(self) -> bool:
        return bool(self.session_token and self.session_token.strip())


@dataclass
class Identity:
    """Credentials for one login attempt. Lives only in process memory."""

    account_name: str = ""
    secret: str = field(default="", repr=False)
    one_time_code: Optional[str] = field(default=None, repr=False)

    @property
    def is_complete(self) -> bool:
        return bool(self.account_name.strip() and self.secret)
