"""
Decides where the account name, secret and one-time code for a login come from.
"""

import logging
from typing import Optional

from synology_ds.exceptions import CredentialProviderError
from synology_ds.models.session import Identity, SessionRecord

from .onepassword import OnePasswordProvider, ProviderReference
from .prompt import Prompter

log = logging.getLogger(__name__)


class CredentialResolver:
    """
    Resolves an identity in priority order: cached token, then the external
    provider, then interactive prompts for whatever is still missing.
    """

    def __init__(
        self,
        prompter: Prompter,
        provider: Optional[OnePasswordProvider] = None,
        reference: Optional[ProviderReference] = None,
    ):
        """
        Args:
            prompter: Used for interactive fallbacks.
            provider: External credential provider, if any.
            reference: The provider item to read. Without one the provider is
                never called.
        """
        self.prompter = prompter
        self.provider = provider if reference is not None else None
        self.reference = reference

    @property
    def uses_provider(self) -> bool:
        return self.provider is not None

    def should_reuse_token(self, record: Optional[SessionRecord]) -> bool:
        """True when a cached token can be used without resolving credentials at all."""
        return bool(record and record.has_token) and not self.uses_provider

    async def resolve(self, record: Optional[SessionRecord]) -> Identity:
        """
        Produces the identity for a fresh login attempt.

        Provider failures are logged and treated as missing fields.
        """
        identity = Identity()
        if self.uses_provider:
            try:
                credentials = await self.provider.fetch(self.reference)
            except CredentialProviderError as e:
                log.warning(f"[yellow]Failed to load 1Password item: {e}[/yellow]")
            else:
                identity = Identity(
                    account_name=credentials.account_name,
                    secret=credentials.secret,
                    one_time_code=credentials.one_time_code,
                )

        default_account = record.account_name if record else None
        return await self._fill_missing(identity, default_account)

    async def prompt_identity(self, default_account: Optional[str] = None) -> Identity:
        """Collects account and secret interactively, e.g. after a rejected login."""
        return await self._fill_missing(Identity(), default_account)

    async def _fill_missing(self, identity: Identity, default_account: Optional[str]) -> Identity:
        if not identity.account_name.strip():
            identity.account_name = await self.prompter.ask_account(default=default_account)
        if not identity.secret:
            identity.secret = await self.prompter.ask_secret()
        return identity

    async def fresh_code(self) -> Optional[str]:
        """Asks the provider for a current one-time code without refetching the item."""
        if not self.uses_provider:
            return None
        return await self.provider.fetch_fresh_code(self.reference)
