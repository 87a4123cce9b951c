"""
The login state machine: resolves credentials, drives the service client until a
session is established, and recovers from expired sessions.
"""

import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from synology_ds.api.client import DownloadStationClient
from synology_ds.credentials.prompt import Prompter
from synology_ds.credentials.resolver import CredentialResolver
from synology_ds.exceptions import (
    AuthenticationCancelled,
    ConfigurationError,
    InvalidResponseError,
    OneTimeCodeRequiredError,
    RemoteError,
    SessionExpiredError,
    TransportError,
)
from synology_ds.models.session import Identity
from synology_ds.storage.session_store import SessionStore

from .state import SessionState, StatusCallback, StatusLine

log = logging.getLogger(__name__)

T = TypeVar("T")

PROVIDER_CODE_REFRESH = "provider_code_refresh"


class AuthPhase(Enum):
    """Where the authenticator is in its login cycle."""

    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    NEED_OTP = "need_otp"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class AuthOrchestrator:
    """
    Owns every transition of the session token.

    It is the only writer of ``session_token`` and, apart from the refresh
    loop's one capture point, of ``default_destination`` in the session store.
    """

    def __init__(
        self,
        client: DownloadStationClient,
        store: SessionStore,
        resolver: CredentialResolver,
        state: SessionState,
        prompter: Prompter,
        on_status: Optional[StatusCallback] = None,
    ):
        self.client = client
        self.store = store
        self.resolver = resolver
        self.state = state
        self.prompter = prompter
        self._on_status = on_status

        self.phase = AuthPhase.IDLE
        self._prompted_once: set[str] = set()
        self.login_attempts = 0

    def _report(self, text: str, tone: str = "info") -> None:
        line = StatusLine(text, tone)
        self.state.status = line
        if self._on_status:
            self._on_status(line)

    async def ensure_authenticated(self) -> None:
        """
        Makes sure the client holds a session token.

        A cached token is reused as-is when no credential provider is
        configured; its validity is only discovered by the first real call.
        """
        if self.phase is AuthPhase.AUTHENTICATED and self.client.has_token:
            return
        if self.resolver.should_reuse_token(self.state.record):
            self.client.session_token = self.state.record.session_token
            self.phase = AuthPhase.AUTHENTICATED
            log.info(f"Reusing cached session for {self.state.host_key}.")
            return
        await self.login()

    async def login(self) -> None:
        """
        Runs the login loop until a session is established or the user aborts.

        Raises:
            AuthenticationCancelled: The user left the one-time code empty.
            ConfigurationError: The host or credentials are malformed; the
                caller must re-collect them.
            TransportError: The service could not be reached.
        """
        self.phase = AuthPhase.AUTHENTICATING
        identity = await self.resolver.resolve(self.state.record)
        otp = identity.one_time_code

        while True:
            self.phase = AuthPhase.AUTHENTICATING
            self.login_attempts += 1
            try:
                token = await self.client.login(identity.account_name, identity.secret, otp)
            except OneTimeCodeRequiredError as e:
                self.phase = AuthPhase.NEED_OTP
                if self.resolver.uses_provider and PROVIDER_CODE_REFRESH not in self._prompted_once:
                    self._prompted_once.add(PROVIDER_CODE_REFRESH)
                    fresh = await self.resolver.fresh_code()
                    if fresh:
                        log.debug("Retrying login with a fresh one-time code from 1Password.")
                        otp = fresh
                        continue
                if not otp:
                    otp = await self.prompter.ask_one_time_code()
                    if not otp:
                        self.phase = AuthPhase.FAILED
                        self._report(str(e), "error")
                        raise AuthenticationCancelled(
                            "Login cancelled: no one-time code provided."
                        ) from e
                    continue
                identity = await self._reject(e, identity)
                otp = None
            except (ConfigurationError, TransportError, InvalidResponseError):
                self.phase = AuthPhase.FAILED
                raise
            except RemoteError as e:
                identity = await self._reject(e, identity)
                otp = None
            else:
                self._commit_login(token, identity.account_name)
                return

    async def _reject(self, error: RemoteError, identity: Identity) -> Identity:
        """Handles a refused login: drop any cached token and ask for credentials again."""
        self.phase = AuthPhase.FAILED
        self._report(f"{error} Please re-enter credentials.", "error")
        self._clear_token()
        return await self.resolver.prompt_identity(identity.account_name or None)

    def _commit_login(self, token: str, account_name: str) -> None:
        self.client.session_token = token
        self.state.record = self.store.update(
            self.state.host_key, session_token=token, account_name=account_name
        )
        self.phase = AuthPhase.AUTHENTICATED
        self._prompted_once.clear()
        log.info(f"Authenticated to {self.state.host} as {account_name}.")

    def _clear_token(self) -> None:
        self.client.session_token = None
        if self.state.record.session_token is not None:
            self.state.record = self.store.update(self.state.host_key, session_token=None)

    def invalidate_session(self) -> None:
        """Forgets the current token locally and in the store."""
        self._clear_token()
        self.phase = AuthPhase.IDLE

    async def reauthenticate(self) -> None:
        """Clears the expired session and runs the full resolution and login again."""
        log.info("Session expired. Re-authenticating...")
        self.invalidate_session()
        await self.ensure_authenticated()

    async def call(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Invokes a remote call, re-authenticating and retrying exactly once if the
        session turns out to be expired. A second expiry propagates.
        """
        try:
            return await fn(*args, **kwargs)
        except SessionExpiredError:
            await self.reauthenticate()
        return await fn(*args, **kwargs)

    def remember_destination(self, path: Optional[str]) -> None:
        """Stores a destination the user chose or confirmed for later create calls."""
        value = (path or "").strip()
        if not value or value == self.state.record.default_destination:
            return
        self.state.record = self.store.update(self.state.host_key, default_destination=value)
        log.debug(f"Default destination for {self.state.host_key} is now {value}")
