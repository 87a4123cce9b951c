"""
Entry point for `synology-ds` and `python -m synology_ds`.

Anything that escapes the Typer app ends up here and is turned into an error
panel and an exit code.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from synology_ds.cli.app import app
from synology_ds.cli.formatters import format_error_with_suggestions
from synology_ds.exceptions import SynologyDsError

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

log = logging.getLogger("synology_ds")


def _use_utf8_streams() -> None:
    """Windows consoles default to a legacy code page; task titles are UTF-8."""
    if os.name != "nt":
        return
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass


def main() -> None:
    _use_utf8_streams()
    err_console = Console(stderr=True)

    try:
        app(prog_name="synology-ds")
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        err_console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
    except SynologyDsError as e:
        err_console.print(format_error_with_suggestions(e))
        sys.exit(EXIT_FAILURE)
    except Exception as e:
        log.debug("Unhandled exception", exc_info=True)
        err_console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
