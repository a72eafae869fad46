"""mnemo CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from mnemo.cli.index import index_cmd
from mnemo.cli.search import get_cmd, search_cmd
from mnemo.cli.status import status_cmd
from mnemo.logging_config import configure_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("mnemo")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"mnemo {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="mnemo",
    help=(
        "mnemo — long-term memory index for coding agents.\n\n"
        "  mnemo index   Index the markdown notes under ~/.mnemo/agents/<identity>/memory.\n"
        "  mnemo search  Find relevant snippets by keyword and meaning."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log progress to stderr."),
    ] = False,
) -> None:
    """mnemo — long-term memory index for coding agents."""
    level = logging.DEBUG if verbose else logging.INFO
    configure_logging(level)
    if verbose:
        logger = logging.getLogger("mnemo")
        if not any(isinstance(h, RichHandler) for h in logger.handlers):
            logger.addHandler(RichHandler(show_path=False))


app.command("index")(index_cmd)
app.command("search")(search_cmd)
app.command("get")(get_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed mnemo version."""
    typer.echo(f"mnemo {_installed_version()}")


if __name__ == "__main__":
    app()
