"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from synology_ds import __version__
from synology_ds.core.session import DownloadStationSession
from synology_ds.core.state import StatusLine
from synology_ds.credentials.prompt import Prompter
from synology_ds.exceptions import SynologyDsError
from synology_ds.models.config import ClientConfig
from synology_ds.storage.config_manager import ConfigManager
from synology_ds.storage.session_store import SessionStore

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_task_details,
    print_task_table,
    status_text,
)
from .interactive import InteractiveShell

console = Console()

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("synology_ds")

app = typer.Typer(
    name="synology-ds",
    help=(
        "Manage Synology Download Station tasks from the terminal. Run without a"
        " command for the interactive shell."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "synology-ds"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"
SESSION_FILE = CONFIG_DIR / "sessions.json"


def _save_confirmed_settings(config_manager: ConfigManager, config: ClientConfig) -> None:
    """Remembers the host, TLS choice and 1Password reference for the next run."""
    settings = {
        "host": config.host,
        "allow_insecure": config.allow_insecure,
        "op_item": config.op_item,
        "op_vault": config.op_vault,
    }
    try:
        config_manager.save_settings({k: v for k, v in settings.items() if v is not None})
    except SynologyDsError as e:
        log.warning(f"[yellow]{e}[/yellow]")


def _run_session(
    ctx: typer.Context,
    action: Optional[Callable[[DownloadStationSession], Awaitable[None]]],
    interactive: bool = False,
) -> None:
    """
    Opens an authenticated session, runs ``action`` with it and closes it.

    Library errors are shown as an error panel and turned into exit code 1.
    """
    cli_options: dict[str, Any] = ctx.obj or {}
    shell: Optional[InteractiveShell] = None

    def on_status(line: StatusLine) -> None:
        if shell is not None:
            shell.on_status(line)
        else:
            console.print(status_text(line))

    async def _session_async():
        nonlocal shell
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config(cli_options)
        prompter = Prompter(console=console)

        session = await DownloadStationSession.open(
            config,
            prompter,
            session_file=SESSION_FILE,
            on_status=on_status,
            refresh_after_change=interactive,
        )
        try:
            _save_confirmed_settings(config_manager, config)
            if interactive:
                shell = InteractiveShell(session, console)
                await shell.run()
            else:
                await action(session)
        finally:
            await session.close()

    try:
        asyncio.run(_session_async())
    except SynologyDsError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(
        None,
        "--host",
        "--url",
        envvar="SYNOLOGY_URL",
        help="Download Station URL, e.g. https://nas.local:5001.",
    ),
    insecure: Optional[bool] = typer.Option(
        None,
        "--insecure/--secure",
        help="Accept self-signed TLS certificates.",
    ),
    op_item: Optional[str] = typer.Option(
        None,
        "--op-item",
        envvar="SYNOLOGY_OP_ITEM",
        help="1Password item holding the username, password and one-time code.",
    ),
    op_vault: Optional[str] = typer.Option(
        None, "--op-vault", envvar="SYNOLOGY_OP_VAULT", help="1Password vault of the item."
    ),
    no_session_cache: bool = typer.Option(
        False, "--no-session-cache", help="Do not read or write the session cache."
    ),
    timeout: Optional[int] = typer.Option(
        None, "--timeout", help="Request timeout in milliseconds."
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    clear_sessions: bool = typer.Option(
        False, "--clear-sessions", help="Forget all cached sessions and exit."
    ),
):
    """Synology Download Station CLI"""
    if version:
        console.print(f"[bold]synology-ds[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose == 1:
        log_level = "INFO"
    elif verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("synology_ds").setLevel(log_level)

    if clear_sessions:
        count = SessionStore(SESSION_FILE).clear()
        console.print(f"[green]✓ Cleared {count} cached session(s).[/green]")
        raise typer.Exit()

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[yellow]No config file yet.[/yellow] It is created after the first login."
            )
            raise typer.Exit()
        config_manager = ConfigManager(CONFIG_FILE)
        try:
            config_manager.load_config()
        except SynologyDsError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        print_config(CONFIG_FILE, config_manager._get_config_as_dict())
        raise typer.Exit()

    ctx.obj = {
        "host": host,
        "allow_insecure": insecure,
        "op_item": op_item,
        "op_vault": op_vault,
        "session_cache": False if no_session_cache else None,
        "timeout_ms": timeout,
    }

    if ctx.invoked_subcommand is None:
        _run_session(ctx, None, interactive=True)


@app.command()
def interactive(ctx: typer.Context):
    """Start the interactive shell (the default)."""
    _run_session(ctx, None, interactive=True)


@app.command(name="list")
def list_command(ctx: typer.Context):
    """List all download tasks."""

    async def _list(session: DownloadStationSession):
        print_task_table(await session.runner.list_tasks(), console)

    _run_session(ctx, _list)


@app.command()
def info(ctx: typer.Context, task_id: str = typer.Argument(..., help="Task ID.")):
    """Show details for a task."""

    async def _info(session: DownloadStationSession):
        print_task_details(await session.runner.task_info(task_id), console)

    _run_session(ctx, _info)


@app.command()
def create(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="HTTP(S) URL or magnet link."),
    destination: Optional[str] = typer.Option(
        None, "--destination", "-d", help="Shared folder to download into."
    ),
):
    """Create a task from a URL or magnet link."""

    async def _create(session: DownloadStationSession):
        await session.runner.create(url, destination)

    _run_session(ctx, _create)


@app.command(name="create-file")
def create_file(
    ctx: typer.Context,
    path: Path = typer.Argument(  # noqa: B008
        ..., exists=True, dir_okay=False, readable=True, help="Local .torrent file."
    ),
    destination: Optional[str] = typer.Option(
        None, "--destination", "-d", help="Shared folder to download into."
    ),
):
    """Create a task by uploading a .torrent file."""

    async def _create_file(session: DownloadStationSession):
        await session.runner.create_from_file(path, destination)

    _run_session(ctx, _create_file)


@app.command()
def pause(ctx: typer.Context, task_id: str = typer.Argument(..., help="Task ID.")):
    """Pause a task."""

    async def _pause(session: DownloadStationSession):
        await session.runner.pause(task_id)

    _run_session(ctx, _pause)


@app.command()
def resume(ctx: typer.Context, task_id: str = typer.Argument(..., help="Task ID.")):
    """Resume a paused task."""

    async def _resume(session: DownloadStationSession):
        await session.runner.resume(task_id)

    _run_session(ctx, _resume)


@app.command()
def complete(ctx: typer.Context, task_id: str = typer.Argument(..., help="Task ID.")):
    """Mark a task as complete."""

    async def _complete(session: DownloadStationSession):
        await session.runner.complete(task_id)

    _run_session(ctx, _complete)


@app.command()
def delete(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task ID."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Delete even if the task is not finished."
    ),
):
    """Delete a task."""

    async def _delete(session: DownloadStationSession):
        await session.runner.delete(task_id, force=force)

    _run_session(ctx, _delete)


@app.command(name="clear-completed")
def clear_completed(ctx: typer.Context):
    """Remove all finished tasks."""

    async def _clear(session: DownloadStationSession):
        await session.runner.clear_completed()

    _run_session(ctx, _clear)


@app.command(name="auth-check")
def auth_check(ctx: typer.Context):
    """Validate credentials against the NAS."""

    async def _check(session: DownloadStationSession):
        await session.runner.auth_check()

    _run_session(ctx, _check)
