"""Main CLI application."""

from pathlib import Path
from typing import Annotated

import typer

from hmytodo.cli.commands import auth, config, todo

app = typer.Typer(
    name="hmytodo",
    help="hmytodo - todos with a 24 hour deadline",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show debug logs",
        ),
    ] = False,
) -> None:
    """Register, sign in, and manage todos."""
    from hmytodo.logging import configure_logging

    configure_logging(level="DEBUG" if verbose else None, use_rich=verbose)
    ctx.obj = {"config_path": config_path}


auth.register(app)
todo.register(app)
config.register(app)


if __name__ == "__main__":
    app()
