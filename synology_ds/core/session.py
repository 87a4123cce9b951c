"""
Wires the client, session store, credentials, authenticator, refresh loop and
command runner together for one host.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from synology_ds.api.client import DownloadStationClient
from synology_ds.credentials.onepassword import OnePasswordProvider, ProviderReference
from synology_ds.credentials.prompt import Prompter
from synology_ds.credentials.resolver import CredentialResolver
from synology_ds.exceptions import ConfigurationError
from synology_ds.models.config import ClientConfig
from synology_ds.models.session import SessionRecord
from synology_ds.storage.session_store import SessionStore
from synology_ds.utils.host import canonical_host, normalize_host_key

from .authenticator import AuthOrchestrator
from .commands import CommandRunner
from .gate import ForegroundGate
from .state import SessionState, StatusCallback
from .sync_loop import SyncLoop

log = logging.getLogger(__name__)

ClientFactory = Callable[[str, int, bool], DownloadStationClient]


def _default_client_factory(
    host: str, timeout_ms: int, allow_insecure: bool
) -> DownloadStationClient:
    return DownloadStationClient(host, timeout_ms=timeout_ms, allow_insecure=allow_insecure)


class DownloadStationSession:
    """
    A connected, authenticated session against one Download Station host.

    Use :meth:`open` to build one; it keeps asking for the host until a login
    succeeds or the user gives up.
    """

    def __init__(
        self,
        config: ClientConfig,
        prompter: Prompter,
        store: SessionStore,
        client: DownloadStationClient,
        state: SessionState,
        orchestrator: AuthOrchestrator,
        sync_loop: SyncLoop,
        runner: CommandRunner,
    ):
        self.config = config
        self.prompter = prompter
        self.store = store
        self.client = client
        self.state = state
        self.orchestrator = orchestrator
        self.sync_loop = sync_loop
        self.runner = runner

    @property
    def gate(self) -> ForegroundGate:
        return self.prompter.gate

    @classmethod
    async def open(
        cls,
        config: ClientConfig,
        prompter: Prompter,
        session_file: Optional[Path] = None,
        provider: Optional[OnePasswordProvider] = None,
        client_factory: Optional[ClientFactory] = None,
        on_status: Optional[StatusCallback] = None,
        on_update: Optional[Callable[[SessionState], None]] = None,
        refresh_after_change: bool = False,
    ) -> "DownloadStationSession":
        """
        Resolves the host, authenticates and returns a ready session.

        A malformed host, or one the login rejects as malformed, is reported
        and asked for again. Every other failure propagates.

        Args:
            config: Effective configuration. ``host`` and ``allow_insecure`` are
                updated in place with what was confirmed here.
            prompter: Used for every interactive question.
            session_file: Location of the session cache.
            provider: Credential provider used when ``config.op_item`` is set.
            client_factory: Builds the API client; tests inject fakes here.
            on_status: Receives status lines from auth and commands.
            on_update: Called after each successful task refresh.
            refresh_after_change: Refresh the snapshot after mutating commands.
        """
        client_factory = client_factory or _default_client_factory
        store = SessionStore(session_file, persist=config.session_cache)

        reference = None
        if config.uses_credential_provider:
            reference = ProviderReference(item=config.op_item, vault=config.op_vault)
            provider = provider or OnePasswordProvider()
        resolver = CredentialResolver(prompter, provider=provider, reference=reference)

        raw_host = config.host
        host_was_prompted = False
        if not raw_host:
            raw_host = await prompter.ask_host()
            host_was_prompted = True

        while True:
            try:
                host = canonical_host(raw_host)
            except ConfigurationError as e:
                prompter.notify(f"[red]{e}[/red]")
                raw_host = await prompter.ask_host()
                host_was_prompted = True
                continue

            if config.allow_insecure is None:
                config.allow_insecure = (
                    await prompter.confirm("Allow self-signed TLS certificates?")
                    if host_was_prompted
                    else False
                )

            host_key = normalize_host_key(host)
            record = store.load(host_key) or SessionRecord(host_key=host_key)
            state = SessionState(host=host, host_key=host_key, record=record)
            client = client_factory(host, config.timeout_ms, bool(config.allow_insecure))
            orchestrator = AuthOrchestrator(
                client, store, resolver, state, prompter, on_status=on_status
            )

            try:
                await orchestrator.ensure_authenticated()
            except ConfigurationError as e:
                await client.close()
                prompter.notify(f"[red]{e}[/red]")
                raw_host = await prompter.ask_host()
                host_was_prompted = True
                continue
            except BaseException:
                await client.close()
                raise

            config.host = host
            sync_loop = SyncLoop(
                orchestrator,
                client,
                state,
                store,
                prompter.gate,
                interval=config.poll_interval,
                on_update=on_update,
                on_status=on_status,
            )
            runner = CommandRunner(
                orchestrator,
                client,
                state,
                prompter.gate,
                prompter,
                sync_loop=sync_loop,
                refresh_after_change=refresh_after_change,
                on_status=on_status,
            )
            log.debug(f"Session ready for {host_key}.")
            return cls(config, prompter, store, client, state, orchestrator, sync_loop, runner)

    async def close(self) -> None:
        """Stops the refresh loop and releases the HTTP session."""
        await self.sync_loop.stop()
        await self.client.close()

    async def __aenter__(self) -> "DownloadStationSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
