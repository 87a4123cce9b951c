"""
Loads credentials and fresh one-time codes from 1Password through the ``op`` CLI.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from synology_ds.exceptions import CredentialProviderError

log = logging.getLogger(__name__)

USERNAME_KEYS = ("username", "user")
PASSWORD_KEYS = ("password",)
OTP_KEYS = ("otp", "totp", "one-time password", "one-time", "2fa", "mfa")


@dataclass(frozen=True)
class ProviderReference:
    """Which 1Password item (and optionally vault) holds the NAS account."""

    item: str
    vault: Optional[str] = None


@dataclass(frozen=True)
class ProviderCredentials:
    account_name: str
    secret: str = field(repr=False)
    one_time_code: Optional[str] = field(default=None, repr=False)


def _iter_fields(item: dict[str, Any]) -> Iterable[dict[str, Any]]:
    for entry in item.get("fields") or []:
        if isinstance(entry, dict):
            yield entry
    for section in item.get("sections") or []:
        if not isinstance(section, dict):
            continue
        for entry in section.get("fields") or []:
            if isinstance(entry, dict):
                yield entry


def find_field(item: dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    """
    Finds the value of the first field whose id, label or purpose matches one of
    ``keys`` (case-insensitive), looking at top-level fields before sections.
    """
    wanted = {key.lower() for key in keys}
    for entry in _iter_fields(item):
        candidates = (entry.get("id"), entry.get("label"), entry.get("purpose"))
        if any(isinstance(c, str) and c.lower() in wanted for c in candidates):
            value = entry.get("value")
            return str(value) if value not in (None, "") else None
    return None


def parse_item(item: dict[str, Any]) -> ProviderCredentials:
    """Extracts username, password and an optional one-time code from an item."""
    username = find_field(item, USERNAME_KEYS)
    if not username:
        raise CredentialProviderError("1Password item is missing a username field.")
    password = find_field(item, PASSWORD_KEYS)
    if not password:
        raise CredentialProviderError("1Password item is missing a password field.")
    totp = item.get("totp") or find_field(item, OTP_KEYS)
    return ProviderCredentials(account_name=username, secret=password, one_time_code=totp or None)


class OnePasswordProvider:
    """Thin async wrapper over ``op item get``."""

    def __init__(self, executable: str = "op", timeout: float = 30.0):
        self.executable = executable
        self.timeout = timeout

    async def _run(self, *args: str) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CredentialProviderError(
                "Unable to launch 'op' CLI. Ensure 1Password CLI is installed and in PATH."
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise CredentialProviderError("1Password CLI timed out.") from e

        if process.returncode != 0:
            message = stderr.decode("utf-8", "replace").strip()
            raise CredentialProviderError(
                message or "1Password CLI failed. Did you run `eval \"$(op signin)\"`?"
            )
        return stdout.decode("utf-8", "replace")

    @staticmethod
    def _item_args(reference: ProviderReference) -> list[str]:
        args = ["item", "get", reference.item]
        if reference.vault:
            args += ["--vault", reference.vault]
        return args

    async def fetch(self, reference: ProviderReference) -> ProviderCredentials:
        """
        Loads the full credential set for an item.

        Raises:
            CredentialProviderError: If ``op`` fails or the item lacks fields.
        """
        output = await self._run(*self._item_args(reference), "--format", "json")
        try:
            item = json.loads(output)
        except json.JSONDecodeError as e:
            raise CredentialProviderError("1Password CLI returned invalid JSON.") from e
        if not isinstance(item, dict):
            raise CredentialProviderError("1Password CLI returned an unexpected item shape.")
        credentials = parse_item(item)
        log.debug(f"Loaded 1Password item '{reference.item}' for {credentials.account_name}")
        return credentials

    async def fetch_fresh_code(self, reference: ProviderReference) -> Optional[str]:
        """Returns the item's current one-time code, or None if unavailable."""
        try:
            output = await self._run(*self._item_args(reference), "--otp")
        except CredentialProviderError as e:
            log.debug(f"Could not refresh one-time code from 1Password: {e}")
            return None
        code = output.strip()
        return code or None
