"""Tests for the terminal prompter."""
import asyncio
import io
import threading

import pytest
from rich.console import Console

from synology_ds.core.gate import ForegroundGate
from synology_ds.credentials.prompt import Prompter, run_in_daemon_thread


class BlockingInput:
    """Stands in for ``Console.input`` on a terminal nobody is typing into."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self.thread = None

    def __call__(self, prompt=""):
        self.thread = threading.current_thread()
        self.started.set()
        self.release.wait(timeout=5)
        raise EOFError


@pytest.fixture
def blocked_prompter():
    prompter = Prompter(gate=ForegroundGate(), console=Console(file=io.StringIO()))
    blocking = BlockingInput()
    prompter.console.input = blocking
    yield prompter, blocking
    blocking.release.set()


class TestReadLine:
    """Reading a command line without tying up interpreter shutdown."""

    @pytest.mark.asyncio
    async def test_pending_read_can_be_cancelled(self, blocked_prompter):
        prompter, blocking = blocked_prompter

        pending = asyncio.create_task(prompter.read_line("synology-ds> "))
        assert await asyncio.to_thread(blocking.started.wait, 2)
        assert prompter.gate.prompting

        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(pending, timeout=1)

        assert not prompter.gate.prompting
        assert blocking.thread.daemon

    @pytest.mark.asyncio
    async def test_answer_is_returned(self):
        prompter = Prompter(console=Console(file=io.StringIO()))
        prompter.console.input = lambda prompt="": "list"

        assert await prompter.read_line("> ") == "list"
        assert not prompter.gate.prompting

    @pytest.mark.asyncio
    async def test_end_of_input_is_raised(self):
        prompter = Prompter(console=Console(file=io.StringIO()))

        def closed(prompt=""):
            raise EOFError

        prompter.console.input = closed

        with pytest.raises(EOFError):
            await prompter.read_line("> ")


class TestRunInDaemonThread:
    """Test suite for run_in_daemon_thread."""

    @pytest.mark.asyncio
    async def test_late_answer_after_cancel_is_dropped(self):
        release = threading.Event()

        def slow():
            release.wait(timeout=5)
            return "too late"

        pending = asyncio.create_task(run_in_daemon_thread(slow))
        await asyncio.sleep(0)
        pending.cancel()
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await pending
        await asyncio.sleep(0.05)
