"""Pytest fixtures for synology-ds tests."""
from dataclasses import dataclass, field
from typing import Optional

import pytest

from fakes import FakeClient, FakePrompter

from synology_ds.core.authenticator import AuthOrchestrator
from synology_ds.core.commands import CommandRunner
from synology_ds.core.gate import ForegroundGate
from synology_ds.core.state import SessionState, StatusLine
from synology_ds.core.sync_loop import SyncLoop
from synology_ds.credentials.onepassword import OnePasswordProvider, ProviderReference
from synology_ds.credentials.resolver import CredentialResolver
from synology_ds.models.session import SessionRecord
from synology_ds.storage.session_store import SessionStore

HOST = "https://nas.local"
HOST_KEY = "nas.local"


@dataclass
class Stack:
    """Everything one connected host needs, wired to fakes."""

    gate: ForegroundGate
    prompter: FakePrompter
    client: FakeClient
    store: SessionStore
    state: SessionState
    resolver: CredentialResolver
    orchestrator: AuthOrchestrator
    sync_loop: SyncLoop
    runner: CommandRunner
    statuses: list[StatusLine] = field(default_factory=list)

    def stored(self) -> Optional[SessionRecord]:
        return self.store.load(HOST_KEY)


@pytest.fixture
def session_file(tmp_path):
    """Location of the session cache inside a private config directory."""
    return tmp_path / "config" / "sessions.json"


@pytest.fixture
def make_stack(session_file):
    """Builds a Stack with an optional cached record, provider and scripted answers."""

    def _make(
        record: Optional[dict] = None,
        provider: Optional[OnePasswordProvider] = None,
        **answers,
    ) -> Stack:
        gate = ForegroundGate()
        prompter = FakePrompter(gate, **answers)
        client = FakeClient(HOST)
        store = SessionStore(session_file)
        if record is not None:
            store.save(HOST_KEY, SessionRecord(host_key=HOST_KEY, **record))
        state = SessionState(
            host=HOST,
            host_key=HOST_KEY,
            record=store.load(HOST_KEY) or SessionRecord(host_key=HOST_KEY),
        )
        reference = ProviderReference(item="NAS") if provider else None
        resolver = CredentialResolver(prompter, provider=provider, reference=reference)
        statuses: list[StatusLine] = []
        orchestrator = AuthOrchestrator(
            client, store, resolver, state, prompter, on_status=statuses.append
        )
        sync_loop = SyncLoop(
            orchestrator, client, state, store, gate, interval=0.01, on_status=statuses.append
        )
        runner = CommandRunner(
            orchestrator,
            client,
            state,
            gate,
            prompter,
            sync_loop=sync_loop,
            on_status=statuses.append,
        )
        return Stack(
            gate=gate,
            prompter=prompter,
            client=client,
            store=store,
            state=state,
            resolver=resolver,
            orchestrator=orchestrator,
            sync_loop=sync_loop,
            runner=runner,
            statuses=statuses,
        )

    return _make


@pytest.fixture
def sample_task_payload():
    """Returns one task entry as SYNO.DownloadStation2.Task list returns it."""
    return {
        "id": "dbid_42",
        "title": "ubuntu-24.04-desktop-amd64.iso",
        "size": 6_000_000_000,
        "status": 2,
        "type": "bt",
        "username": "alice",
        "additional": {
            "detail": {
                "destination": "downloads/linux",
                "uri": "magnet:?xt=urn:btih:abc",
            },
            "transfer": {
                "size_downloaded": 1_500_000_000,
                "speed_download": 5_000_000,
                "speed_upload": 20_000,
            },
        },
    }
