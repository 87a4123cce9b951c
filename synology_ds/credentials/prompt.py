"""
Interactive prompts for host, credentials, one-time codes and destinations.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Optional, TypeVar

from rich.console import Console
from rich.prompt import Prompt

from synology_ds.core.gate import ForegroundGate

log = logging.getLogger(__name__)

T = TypeVar("T")


async def run_in_daemon_thread(fn: Callable[..., T], *args: Any) -> T:
    """
    Runs a blocking call on a daemon thread and awaits its result.

    Unlike ``asyncio.to_thread``, the thread is not part of the default
    executor, so interpreter shutdown never waits for a read that is still
    blocked on stdin. Cancelling the await abandons the thread.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _deliver(setter: Callable[[Any], None], value: Any) -> None:
        if not future.done():
            setter(value)

    def _worker() -> None:
        try:
            result = fn(*args)
        except BaseException as e:
            outcome = (future.set_exception, e)
        else:
            outcome = (future.set_result, result)
        try:
            loop.call_soon_threadsafe(_deliver, *outcome)
        except RuntimeError:
            log.debug("Event loop closed before a prompt answer arrived.")

    threading.Thread(target=_worker, name="synology-ds-prompt", daemon=True).start()
    return await future


class Prompter:
    """
    Asks the user for values without blocking the event loop.

    Each question runs ``rich.prompt.Prompt.ask`` on a daemon thread, so the
    background refresh task can still be cancelled while the user is typing.
    While a question is open the gate reports ``prompting`` and the refresh
    loop skips its ticks.
    """

    def __init__(self, gate: Optional[ForegroundGate] = None, console: Optional[Console] = None):
        self.gate = gate or ForegroundGate()
        self.console = console or Console()

    def _ask_blocking(self, label: str, default: Optional[str], password: bool) -> str:
        answer = Prompt.ask(
            label,
            console=self.console,
            password=password,
            default=default,
            show_default=default is not None and not password,
        )
        return (answer or "").strip()

    async def _ask(self, label: str, default: Optional[str] = None, password: bool = False) -> str:
        with self.gate.prompt():
            return await run_in_daemon_thread(self._ask_blocking, label, default, password)

    async def ask(
        self, label: str, default: Optional[str] = None, allow_empty: bool = False
    ) -> str:
        """
        Asks for a value, re-asking on empty input unless ``allow_empty``.

        A non-empty ``default`` is returned when the user just presses Enter.
        """
        default = default or None
        while True:
            answer = await self._ask(label, default=default)
            if answer or allow_empty:
                return answer

    async def ask_secret(self, label: str = "Password") -> str:
        """Asks for a secret without echoing it. Never returns an empty string."""
        while True:
            answer = await self._ask(label, password=True)
            if answer:
                return answer

    async def ask_host(self) -> str:
        return await self.ask("Synology URL")

    async def ask_account(self, default: Optional[str] = None) -> str:
        return await self.ask("Username", default=default)

    async def ask_one_time_code(self) -> str:
        """Asks for a two-step verification code. An empty answer means cancel."""
        return await self.ask("One-time code (leave blank to cancel)", allow_empty=True)

    async def ask_destination(self) -> str:
        """Asks for a download folder on the NAS. An empty answer means cancel."""
        return await self.ask("Download destination", allow_empty=True)

    async def confirm(self, label: str) -> bool:
        answer = await self.ask(f"{label} (y/N)", allow_empty=True)
        return answer.lower() in ("y", "yes")

    async def read_line(self, prompt: str) -> str:
        """Reads one raw command line. Raises EOFError when input is closed."""
        with self.gate.prompt():
            return await run_in_daemon_thread(self.console.input, prompt)

    def notify(self, message: str) -> None:
        """Prints a one-line notice above the next prompt."""
        self.console.print(message)
