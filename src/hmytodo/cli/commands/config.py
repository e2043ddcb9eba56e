"""Configuration management commands."""

from pathlib import Path
from typing import Annotated

import click
import typer

from hmytodo.cli.console import console, error, success


def register(app: typer.Typer) -> None:
    """Register the config command."""

    @app.command()
    def config(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, validate"),
        ] = None,
        path: Annotated[
            Path | None,
            typer.Option(
                "--path",
                "-p",
                help="Path to config file (default: $HMYTODO_HOME/config.toml)",
            ),
        ] = None,
    ) -> None:
        """Show or validate the configuration file."""
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        import tomllib

        from pydantic import ValidationError
        from rich.syntax import Syntax
        from rich.table import Table

        from hmytodo.config import load_config
        from hmytodo.config.paths import get_config_path

        expanded_path = path.expanduser() if path else get_config_path()

        if action == "show":
            if not expanded_path.exists():
                error(f"Config file not found: {expanded_path}")
                console.print("Defaults are in effect until one is created")
                raise typer.Exit(1)

            content = expanded_path.read_text()
            syntax = Syntax(content, "toml", theme="monokai", line_numbers=True)
            console.print(f"[bold]Config file: {expanded_path}[/bold]\n")
            console.print(syntax)

        elif action == "validate":
            try:
                config_obj = load_config(expanded_path)
            except FileNotFoundError as e:
                error(f"File not found: {e}")
                raise typer.Exit(1) from None
            except tomllib.TOMLDecodeError as e:
                error(f"Invalid TOML: {e}")
                raise typer.Exit(1) from None
            except ValidationError as e:
                error("Configuration validation failed:")
                console.print()
                for err in e.errors():
                    loc = ".".join(str(x) for x in err["loc"])
                    console.print(f"  [yellow]{loc}[/yellow]: {err['msg']}")
                raise typer.Exit(1) from None

            table = Table(title="Configuration Summary")
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")

            table.add_row("Store", config_obj.store.backend)
            if config_obj.store.backend == "sqlite":
                table.add_row("Database", str(config_obj.store.database_path))
            sweep = config_obj.todos.sweep_mode
            if sweep == "poll":
                sweep = f"poll every {config_obj.todos.poll_interval:g}s"
            table.add_row("Deadline sweep", sweep)
            table.add_row(
                "Email domains", ", ".join(config_obj.auth.allowed_email_domains)
            )
            table.add_row(
                "Google sign-in",
                "configured"
                if config_obj.auth.oauth_client_id
                else "[dim]not configured[/dim]",
            )

            success("Configuration is valid!")
            console.print()
            console.print(table)

        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: show, validate")
            raise typer.Exit(1)
