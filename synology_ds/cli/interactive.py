"""
The interactive shell: a command prompt over one authenticated session, with the
refresh loop running in the background.
"""

import asyncio
import logging
import shlex
import signal
from contextlib import suppress
from typing import Awaitable, Callable, Optional

from rich.console import Console
from rich.live import Live

from synology_ds.core.commands import CommandRunner
from synology_ds.core.session import DownloadStationSession
from synology_ds.core.state import StatusLine
from synology_ds.exceptions import SynologyDsError

from .formatters import (
    build_watch_view,
    print_interactive_help,
    print_task_details,
    print_task_table,
    status_text,
)

log = logging.getLogger(__name__)

PROMPT = "[bold cyan]synology-ds>[/bold cyan] "
EXIT_WORDS = ("exit", "quit")


class UsageError(Exception):
    """A command line that does not match the command's arguments."""


class InteractiveShell:
    """
    Reads commands until ``exit``, ``quit`` or end of input.

    Errors from a command are printed as a status line and the shell keeps
    running. The snapshot is loaded once at start. The command line itself
    counts as an open prompt, so after that background polls only happen while
    ``watch`` is showing.
    """

    def __init__(self, session: DownloadStationSession, console: Optional[Console] = None):
        self.session = session
        self.console = console or Console()
        self.watching = False
        self._commands: dict[str, Callable[[list[str]], Awaitable[None]]] = {
            "list": self._list,
            "ls": self._list,
            "info": self._info,
            "create": self._create,
            "add": self._create,
            "create-file": self._create_file,
            "pause": self._pause,
            "resume": self._resume,
            "toggle": self._toggle,
            "complete": self._complete,
            "delete": self._delete,
            "rm": self._delete,
            "clear-completed": self._clear_completed,
            "auth-check": self._auth_check,
            "watch": self._watch,
            "status": self._status,
            "help": self._help,
        }

    @property
    def runner(self) -> CommandRunner:
        return self.session.runner

    def on_status(self, line: StatusLine) -> None:
        """Prints status lines as they happen, except while the live view owns the screen."""
        if not self.watching:
            self.console.print(status_text(line))

    async def run(self) -> None:
        state = self.session.state
        self.console.print(
            f"[green]Connected to {state.host} as {state.account_name or 'unknown'}.[/green]"
            " Type [cyan]help[/cyan] for commands, [cyan]exit[/cyan] to quit."
        )
        await self.session.sync_loop.tick()
        await self.session.sync_loop.start()
        try:
            while True:
                try:
                    line = await self.session.prompter.read_line(PROMPT)
                except EOFError:
                    self.console.print()
                    break
                if not await self.execute(line):
                    break
        finally:
            await self.session.sync_loop.stop()

    async def execute(self, line: str) -> bool:
        """
        Runs one command line.

        Returns:
            False when the shell should exit.
        """
        try:
            tokens = shlex.split(line)
        except ValueError as e:
            self.console.print(f"[red]Could not parse command: {e}[/red]")
            return True
        if not tokens:
            return True

        name, args = tokens[0].lower(), tokens[1:]
        if name in EXIT_WORDS:
            return False

        handler = self._commands.get(name)
        if handler is None:
            self.console.print(
                f"[yellow]Unknown command '{name}'. Type 'help' for commands.[/yellow]"
            )
            return True

        try:
            await handler(args)
        except UsageError as e:
            self.console.print(f"[yellow]Usage: {e}[/yellow]")
        except SynologyDsError as e:
            self.console.print(f"[red]✗ {e}[/red]")
        return True

    @staticmethod
    def _task_id(args: list[str], usage: str) -> str:
        if len(args) != 1:
            raise UsageError(usage)
        return args[0]

    async def _list(self, args: list[str]) -> None:
        tasks = await self.runner.list_tasks()
        print_task_table(tasks, self.console)

    async def _info(self, args: list[str]) -> None:
        task_id = self._task_id(args, "info <id>")
        print_task_details(await self.runner.task_info(task_id), self.console)

    async def _create(self, args: list[str]) -> None:
        if len(args) not in (1, 2):
            raise UsageError("create <url> [destination]")
        await self.runner.create(args[0], args[1] if len(args) == 2 else None)

    async def _create_file(self, args: list[str]) -> None:
        if len(args) not in (1, 2):
            raise UsageError("create-file <path> [destination]")
        await self.runner.create_from_file(args[0], args[1] if len(args) == 2 else None)

    async def _pause(self, args: list[str]) -> None:
        await self.runner.pause(self._task_id(args, "pause <id>"))

    async def _resume(self, args: list[str]) -> None:
        await self.runner.resume(self._task_id(args, "resume <id>"))

    async def _toggle(self, args: list[str]) -> None:
        await self.runner.toggle(self._task_id(args, "toggle <id>"))

    async def _complete(self, args: list[str]) -> None:
        await self.runner.complete(self._task_id(args, "complete <id>"))

    async def _delete(self, args: list[str]) -> None:
        force = "--force" in args
        rest = [a for a in args if a != "--force"]
        await self.runner.delete(self._task_id(rest, "delete <id> [--force]"), force=force)

    async def _clear_completed(self, args: list[str]) -> None:
        await self.runner.clear_completed()

    async def _auth_check(self, args: list[str]) -> None:
        await self.runner.auth_check()

    async def _status(self, args: list[str]) -> None:
        state = self.session.state
        loop = self.session.sync_loop
        self.console.print(f"[bold]Host:[/bold] {state.host}")
        self.console.print(f"[bold]Account:[/bold] {state.account_name or '-'}")
        self.console.print(f"[bold]Destination:[/bold] {state.default_destination or '-'}")
        self.console.print(f"[bold]Tasks:[/bold] {len(state.tasks)}")
        if state.last_refresh:
            self.console.print(
                f"[bold]Last refresh:[/bold] {state.last_refresh.astimezone():%H:%M:%S}"
            )
        self.console.print(
            f"[dim]Refresh loop: {loop.ticks_run} polls, {loop.ticks_skipped} skipped[/dim]"
        )
        if state.status:
            self.console.print(status_text(state.status))

    async def _help(self, args: list[str]) -> None:
        print_interactive_help(self.console)

    async def _watch(self, args: list[str]) -> None:
        """
        Shows a live task view, redrawn every poll interval, until Ctrl-C.

        A prompt opened by the refresh loop (e.g. to log in again) closes the
        view first, and the shell waits for that poll to finish before it
        reads the next command.
        """
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        gate = self.session.gate
        previous_handler = signal.getsignal(signal.SIGINT)
        handler_installed = False
        with suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signal.SIGINT, stop.set)
            handler_installed = True

        live = Live(
            build_watch_view(self.session.state),
            console=self.console,
            refresh_per_second=4,
            transient=True,
        )

        def leave_for_prompt() -> None:
            live.stop()
            self.watching = False
            stop.set()

        self.watching = True
        gate.add_prompt_listener(leave_for_prompt)
        try:
            with live:
                while not stop.is_set():
                    with suppress(asyncio.TimeoutError):
                        await asyncio.wait_for(stop.wait(), timeout=self.session.sync_loop.interval)
                    if not stop.is_set():
                        live.update(build_watch_view(self.session.state))
        finally:
            gate.remove_prompt_listener(leave_for_prompt)
            self.watching = False
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)
                signal.signal(signal.SIGINT, previous_handler)

        async with gate.action():
            pass
