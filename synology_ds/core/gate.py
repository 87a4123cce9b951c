"""
The single "busy" gate shared by foreground actions, interactive prompts and the
background refresh loop.
"""

import asyncio
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Callable, Iterator


class ForegroundGate:
    """
    Serializes remote calls and tells the refresh loop when to stay quiet.

    Foreground actions hold the lock for their whole duration, including any
    re-authentication they trigger. Prompts only bump a counter: they do not
    take the lock, so a prompt opened from inside an action cannot deadlock.
    The refresh loop never waits on the gate; it skips its tick when
    ``is_idle`` is False.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._open_prompts = 0
        self._prompt_listeners: list[Callable[[], None]] = []

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def prompting(self) -> bool:
        return self._open_prompts > 0

    @property
    def is_idle(self) -> bool:
        return not self.busy and not self.prompting

    @asynccontextmanager
    async def action(self) -> AsyncIterator[None]:
        """Holds the gate for one foreground action. Waits if a poll is running."""
        async with self._lock:
            yield

    def add_prompt_listener(self, listener: Callable[[], None]) -> None:
        """Registers a callback run on the event loop just before a prompt opens."""
        self._prompt_listeners.append(listener)

    def remove_prompt_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._prompt_listeners:
            self._prompt_listeners.remove(listener)

    @contextmanager
    def prompt(self) -> Iterator[None]:
        """Marks an interactive prompt as open."""
        for listener in list(self._prompt_listeners):
            listener()
        self._open_prompts += 1
        try:
            yield
        finally:
            self._open_prompts -= 1
