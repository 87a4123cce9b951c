"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_POLL_INTERVAL = 1.0


class ClientConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Connection
    host: str = ""
    allow_insecure: Optional[bool] = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    # Credentials provider (1Password)
    op_item: Optional[str] = None
    op_vault: Optional[str] = None

    # Session handling
    session_cache: bool = True
    poll_interval: float = DEFAULT_POLL_INTERVAL

    @field_validator("op_item", "op_vault")
    @classmethod
    def empty_as_none(cls, v: Optional[str]) -> Optional[str]:
        """Treats blank provider references as unset."""
        if v is None or not v.strip():
            return None
        return v

    @field_validator("timeout_ms")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Ensures a usable HTTP timeout."""
        if v < 1 or v > 600_000:
            raise ValueError("Timeout must be between 1 and 600000 milliseconds.")
        return v

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        """Keeps the refresh loop between a fast and a lazy cadence."""
        if v < 0.2 or v > 60:
            raise ValueError("Poll interval must be between 0.2 and 60 seconds.")
        return v

    @property
    def uses_credential_provider(self) -> bool:
        return self.op_item is not None

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        return set(cls.model_fields)
