from __future__ import annotations

import logging
from typing import Annotated

import typer

from .base import configure_logging
from .commands.psd import app as psd_app

configure_logging()
app = typer.Typer(
    help="Median Welch power spectral density CLI",
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.add_typer(psd_app, name="psd")


@app.callback()
def root(
    log_level: Annotated[
        str,
        typer.Option("--log-level", "-l", help="Logging level: DEBUG, INFO, WARNING, ERROR."),
    ] = "INFO",
) -> None:
    """Robust PSD estimation for multichannel time series."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}", param_hint="--log-level")
    configure_logging(level)


def main() -> None:
    """Main entry point for package CLI.

    Invokes the Typer application, which handles command parsing and
    execution.

    Side Effects:
        - Processes CLI arguments and executes commands.
        - May exit with non-zero code on errors.
    """
    app()


if __name__ == "__main__":
    main()
