"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Optional

from rich import box
from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from synology_ds.core.state import SessionState, StatusLine
from synology_ds.models.task import Task, TaskStatus
from synology_ds.utils.formatting import (
    format_duration,
    format_percent,
    format_size,
    format_speed,
    truncate,
)

TONE_STYLES = {
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}

STATUS_STYLES = {
    TaskStatus.DOWNLOADING: "green",
    TaskStatus.PAUSED: "yellow",
    TaskStatus.FINISHED: "blue",
    TaskStatus.SEEDING: "magenta",
    TaskStatus.WAITING: "dim",
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the URL, e.g. https://nas.local:5001.",
            "• Review the settings with `synology-ds --show-config`.",
        ],
        "AuthenticationError": [
            "• Verify the account name and password.",
            "• Make sure the account may use Download Station.",
        ],
        "AuthenticationCancelled": [
            "• A one-time code is required for this account.",
            "• Use --op-item to read the code from 1Password automatically.",
        ],
        "SessionExpiredError": [
            "• The session could not be renewed.",
            "• Run `synology-ds --clear-sessions` and log in again.",
        ],
        "DestinationRequiredError": [
            "• Pass --destination with a shared folder, e.g. downloads/incoming.",
            "• Or set a default location in Download Station settings.",
        ],
        "OneTimeCodeRequiredError": [
            "• Two-step verification is enabled for this account.",
            "• Enter the current code from your authenticator app.",
        ],
        "TransportError": [
            "• The NAS could not be reached. Check the URL and your network.",
            "• For self-signed certificates, retry with --insecure.",
            "• Raise --timeout for slow connections.",
        ],
        "CredentialProviderError": [
            "• Make sure the 1Password CLI (`op`) is installed and signed in.",
            "• Check the --op-item and --op-vault values.",
        ],
        "InvalidResponseError": [
            "• The URL may not point to a Synology DSM web interface.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip() or "[dim](empty)[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def status_text(line: StatusLine) -> Text:
    style = TONE_STYLES.get(line.tone, "white")
    return Text(line.text, style=style)


def build_task_table(tasks: list[Task], title: Optional[str] = None) -> Table:
    """Builds the task overview shared by `list` and the live `watch` view."""
    table = Table(title=title, box=box.SIMPLE_HEAVY, expand=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", style="cyan", max_width=48)
    table.add_column("Status", no_wrap=True)
    table.add_column("Progress", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Speed", justify="right", style="magenta")
    table.add_column("ETA", justify="right")

    for task in tasks:
        style = STATUS_STYLES.get(task.status, "red" if task.status > 100 else "white")
        table.add_row(
            task.id,
            escape(truncate(task.title, 48)),
            f"[{style}]{task.status_label}[/{style}]",
            format_percent(task.progress),
            format_size(task.byte_size),
            format_speed(task.transfer_speed),
            format_duration(task.time_remaining),
        )
    return table


def print_task_table(tasks: list[Task], console: Optional[Console] = None):
    console = console or Console()
    if not tasks:
        console.print("[dim]No tasks found.[/dim]")
        return
    console.print(build_task_table(tasks, title=f"{len(tasks)} task(s)"))


def print_task_details(tasks: list[Task], console: Optional[Console] = None):
    """Displays every known field of the given tasks, one panel per task."""
    console = console or Console()
    if not tasks:
        console.print("[yellow]No matching task.[/yellow]")
        return

    for task in tasks:
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="bold cyan")
        table.add_column()

        table.add_row("ID:", task.id)
        table.add_row("Status:", task.status_label)
        table.add_row("Type:", task.task_type or "-")
        table.add_row("Owner:", task.username or "-")
        table.add_row("Size:", format_size(task.byte_size))
        table.add_row(
            "Downloaded:",
            f"{format_size(task.transferred_bytes)} ({format_percent(task.progress)})",
        )
        table.add_row("Download speed:", format_speed(task.download_speed))
        table.add_row("Upload speed:", format_speed(task.upload_speed))
        table.add_row("Destination:", task.destination_path or "-")
        if task.uri:
            table.add_row("Source:", f"[dim]{escape(task.uri)}[/dim]")
        if task.error_detail:
            table.add_row("Error:", f"[red]{escape(task.error_detail)}[/red]")

        console.print(
            Panel(table, title=f"[bold]{escape(task.title)}[/bold]", border_style="cyan")
        )


def build_watch_view(state: SessionState) -> Group:
    """Renders the snapshot, the last refresh time and the latest status line."""
    header = Text()
    header.append(state.host, style="bold")
    if state.account_name:
        header.append(f"  {state.account_name}", style="dim")
    if state.last_refresh:
        header.append(f"  updated {state.last_refresh.astimezone():%H:%M:%S}", style="dim")

    parts: list[Any] = [header]
    if state.tasks:
        parts.append(build_task_table(state.tasks))
    else:
        parts.append(Text("No tasks.", style="dim"))
    if state.status:
        parts.append(status_text(state.status))
    parts.append(Text("Press Ctrl-C to stop watching.", style="dim"))
    return Group(*parts)


def print_interactive_help(console: Optional[Console] = None):
    """Lists the commands accepted at the interactive prompt."""
    console = console or Console()
    table = Table(box=box.ROUNDED, title="[bold]Commands[/bold]", title_style="")
    table.add_column("Command", style="bold magenta", no_wrap=True)
    table.add_column("Description")

    table.add_row("list", "Show all tasks.")
    table.add_row("info <id>", "Show details for a task.")
    table.add_row("create <url> [destination]", "Add a URL or magnet link.")
    table.add_row("create-file <path> [destination]", "Upload a .torrent file.")
    table.add_row("pause <id>", "Pause a task.")
    table.add_row("resume <id>", "Resume a task.")
    table.add_row("toggle <id>", "Pause a downloading task, resume any other.")
    table.add_row("complete <id>", "Mark a task as complete.")
    table.add_row("delete <id> [--force]", "Delete a task.")
    table.add_row("clear-completed", "Remove all finished tasks.")
    table.add_row("auth-check", "Verify the current session.")
    table.add_row("watch", "Live view of the task list (Ctrl-C to stop).")
    table.add_row("status", "Show the connection and last status line.")
    table.add_row("help", "Show this list.")
    table.add_row("exit, quit", "Leave interactive mode.")
    console.print(table)
