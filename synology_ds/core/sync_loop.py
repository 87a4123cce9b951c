"""
Periodic background refresh of the task snapshot.
"""

import asyncio
import logging
from contextlib import suppress
from datetime import datetime, timezone
from typing import Callable, Optional

from synology_ds.api.client import DownloadStationClient
from synology_ds.exceptions import SynologyDsError
from synology_ds.models.task import Task, first_destination
from synology_ds.storage.session_store import SessionStore

from .authenticator import AuthOrchestrator
from .gate import ForegroundGate
from .state import SessionState, StatusCallback, StatusLine

log = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0


class SyncLoop:
    """
    Polls the task list on a fixed interval while the foreground is idle.

    A tick that finds the gate busy or a prompt open is skipped, not queued, so
    a slow action never causes a burst of polls afterwards. Every successful
    poll replaces the snapshot wholesale.
    """

    def __init__(
        self,
        orchestrator: AuthOrchestrator,
        client: DownloadStationClient,
        state: SessionState,
        store: SessionStore,
        gate: ForegroundGate,
        interval: float = DEFAULT_INTERVAL,
        on_update: Optional[Callable[[SessionState], None]] = None,
        on_status: Optional[StatusCallback] = None,
    ):
        self.orchestrator = orchestrator
        self.client = client
        self.state = state
        self.store = store
        self.gate = gate
        self.interval = interval
        self._on_update = on_update
        self._on_status = on_status
        self._task: Optional[asyncio.Task] = None

        self.ticks_run = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Starts the background loop. Calling it while running is a no-op."""
        if not self.running:
            self._task = asyncio.create_task(self._run())
            log.debug(f"Started task refresh loop ({self.interval:.1f}s interval).")

    async def stop(self) -> None:
        """Cancels the loop and waits for it to finish."""
        if self._task and not self._task.done():
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            log.debug("Stopped task refresh loop.")
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await self.tick()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                log.debug("Task refresh loop cancelled.")
                break
            except Exception as e:
                log.warning(f"Error in task refresh loop: {e}")
                await asyncio.sleep(self.interval)

    async def tick(self) -> bool:
        """
        Runs one poll unless the foreground is busy.

        Returns:
            True if a poll ran and the snapshot was replaced.
        """
        if not self.gate.is_idle:
            self.ticks_skipped += 1
            return False

        self.ticks_run += 1
        async with self.gate.action():
            try:
                await self.refresh()
            except SynologyDsError as e:
                log.debug(f"Background refresh failed: {e}")
                self._report(StatusLine(str(e), "error"))
                return False
        return True

    async def refresh(self, announce: bool = False) -> list[Task]:
        """
        Fetches the task list and publishes it.

        Does not take the gate; callers that are not already inside a
        foreground action must hold it themselves. Errors propagate and leave
        the previous snapshot untouched.
        """
        await self.orchestrator.ensure_authenticated()
        tasks = await self.orchestrator.call(self.client.list_tasks)

        self.state.tasks = tasks
        self.state.last_refresh = datetime.now(timezone.utc)
        self._capture_destination(tasks)

        if announce:
            self._report(StatusLine(f"Loaded {len(tasks)} task(s).", "success"))
        if self._on_update:
            self._on_update(self.state)
        return tasks

    def _capture_destination(self, tasks: list[Task]) -> None:
        """Learns a default destination from the snapshot if none is cached yet."""
        if self.state.default_destination:
            return
        destination = first_destination(tasks)
        if destination:
            self.state.record = self.store.update(
                self.state.host_key, default_destination=destination
            )
            log.info(f"Using '{destination}' as the default download destination.")

    def _report(self, line: StatusLine) -> None:
        self.state.status = line
        if self._on_status:
            self._on_status(line)
