"""
User-facing commands, each mapped to one Download Station call wrapped in the
gate and the session-expiry retry.
"""

import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

from synology_ds.api.client import DownloadStationClient
from synology_ds.credentials.prompt import Prompter
from synology_ds.exceptions import DestinationRequiredError, SynologyDsError
from synology_ds.models.task import Task, TaskOperation

from .authenticator import AuthOrchestrator
from .gate import ForegroundGate
from .state import SessionState, StatusCallback, StatusLine
from .sync_loop import SyncLoop

log = logging.getLogger(__name__)

T = TypeVar("T")


class CommandRunner:
    """
    Executes commands for one connected host.

    Every command holds the foreground gate for its whole duration, so the
    refresh loop never polls in the middle of an action or its recovery.
    """

    def __init__(
        self,
        orchestrator: AuthOrchestrator,
        client: DownloadStationClient,
        state: SessionState,
        gate: ForegroundGate,
        prompter: Prompter,
        sync_loop: Optional[SyncLoop] = None,
        refresh_after_change: bool = False,
        on_status: Optional[StatusCallback] = None,
    ):
        self.orchestrator = orchestrator
        self.client = client
        self.state = state
        self.gate = gate
        self.prompter = prompter
        self.sync_loop = sync_loop
        self.refresh_after_change = refresh_after_change
        self._on_status = on_status

    def _report(self, text: str, tone: str = "info") -> None:
        line = StatusLine(text, tone)
        self.state.status = line
        if self._on_status:
            self._on_status(line)

    async def _run(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        await self.orchestrator.ensure_authenticated()
        return await self.orchestrator.call(fn, *args, **kwargs)

    async def _refresh_snapshot(self) -> None:
        """Refreshes the task list after a change. Failures here never fail the command."""
        if not (self.refresh_after_change and self.sync_loop):
            return
        try:
            await self.sync_loop.refresh()
        except SynologyDsError as e:
            log.debug(f"Refresh after command failed: {e}")

    async def list_tasks(self) -> list[Task]:
        async with self.gate.action():
            if self.sync_loop:
                tasks = await self.sync_loop.refresh()
            else:
                tasks = await self._run(self.client.list_tasks)
        self._report(f"Loaded {len(tasks)} task(s).", "success")
        return tasks

    async def task_info(self, task_id: str) -> list[Task]:
        async with self.gate.action():
            return await self._run(self.client.get_tasks, [task_id])

    async def create(self, url: str, destination: Optional[str] = None) -> Optional[str]:
        """
        Creates a task from a URL or magnet link.

        Returns:
            The destination the task was created with, if any.
        """
        async with self.gate.action():
            used = await self._create_with_destination(self.client.create_task, url, destination)
            self._report(f"Created task for {url}", "success")
            await self._refresh_snapshot()
        return used

    async def create_from_file(
        self, file_path: Path, destination: Optional[str] = None
    ) -> Optional[str]:
        """Uploads a local .torrent file as a new task."""
        file_path = Path(file_path)
        async with self.gate.action():
            used = await self._create_with_destination(
                self.client.create_task_from_file, file_path, destination
            )
            self._report(f"Created task from file {file_path.name}", "success")
            await self._refresh_snapshot()
        return used

    async def _create_with_destination(
        self, create: Callable[..., Awaitable[None]], source, destination: Optional[str]
    ) -> Optional[str]:
        """
        Runs a create call, asking for a destination at most once.

        An explicit destination wins over the cached default. If the service
        still demands one, the user is asked; an empty answer cancels. A second
        demand after the user answered is surfaced as-is.
        """
        attempt = (destination or "").strip() or self.state.default_destination
        try:
            await self._run(create, source, attempt)
        except DestinationRequiredError as e:
            answer = await self.prompter.ask_destination()
            if not answer:
                raise DestinationRequiredError(
                    e.code, "No download destination provided.", e.context
                ) from e
            attempt = answer
            await self._run(create, source, attempt)

        self.orchestrator.remember_destination(attempt)
        return attempt

    async def pause(self, task_id: str) -> TaskOperation:
        async with self.gate.action():
            result = await self._run(self.client.pause_task, task_id)
            await self._refresh_snapshot()
        self._report_operation("Pause", task_id, result)
        return result

    async def resume(self, task_id: str) -> TaskOperation:
        async with self.gate.action():
            result = await self._run(self.client.resume_task, task_id)
            await self._refresh_snapshot()
        self._report_operation("Resume", task_id, result)
        return result

    async def toggle(self, task_id: str) -> TaskOperation:
        """
        Pauses a downloading task and resumes anything else.

        The decision uses the task's status as the service reports it now. The
        snapshot is only consulted when the service does not return the task.
        """
        async with self.gate.action():
            current = await self._run(self.client.get_tasks, [task_id])
            task = next((t for t in current if t.id == task_id), None)
            if task is None:
                task = next((t for t in self.state.tasks if t.id == task_id), None)

            if task is not None and task.is_downloading:
                verb, change = "Pause", self.client.pause_task
            else:
                verb, change = "Resume", self.client.resume_task
            result = await self._run(change, task_id)
            await self._refresh_snapshot()
        self._report_operation(verb, task_id, result)
        return result

    async def complete(self, task_id: str) -> str:
        async with self.gate.action():
            completed_id = await self._run(self.client.complete_task, task_id)
            await self._refresh_snapshot()
        self._report(f"Marked task {completed_id} as complete", "success")
        return completed_id

    async def delete(self, task_id: str, force: bool = False) -> TaskOperation:
        async with self.gate.action():
            result = await self._run(self.client.delete_task, task_id, force=force)
            await self._refresh_snapshot()
        self._report_operation("Delete", task_id, result)
        return result

    async def clear_completed(self) -> None:
        async with self.gate.action():
            await self._run(self.client.clear_completed)
            await self._refresh_snapshot()
        self._report("Cleared completed tasks", "success")

    async def auth_check(self) -> str:
        """Verifies the session with a real call. Returns the account name."""
        async with self.gate.action():
            await self._run(self.client.list_tasks)
        account = self.state.account_name or "unknown account"
        self._report(f"Authenticated as {account}", "success")
        return account

    def _report_operation(self, verb: str, task_id: str, result: TaskOperation) -> None:
        if result.ok:
            self._report(f"{verb} succeeded for {task_id}", "success")
        else:
            codes = ", ".join(f"{tid} ({code})" for tid, code in result.failed)
            self._report(f"{verb} failed for {codes}", "error")
