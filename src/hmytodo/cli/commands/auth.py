"""Account commands: register, sign in, sign out, whoami."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from hmytodo.auth import AuthForm, AuthMode
from hmytodo.cli.console import console, dim, success, warning
from hmytodo.cli.runtime import (
    clear_session,
    load_session_user_id,
    open_backend,
    require_user,
    run,
    save_session,
)


def _config_path(ctx: typer.Context) -> Path | None:
    return (ctx.find_root().obj or {}).get("config_path")


def register(app: typer.Typer) -> None:
    """Register the account commands."""

    @app.command("register")
    def register_cmd(
        ctx: typer.Context,
        email: Annotated[str, typer.Argument(help="Gmail address")],
        password: Annotated[
            str,
            typer.Option(
                "--password",
                "-p",
                prompt=True,
                hide_input=True,
                confirmation_prompt=True,
                help="Account password",
            ),
        ],
        name: Annotated[
            str, typer.Option("--name", "-n", help="Display name")
        ] = "",
    ) -> None:
        """Create an account and sign in."""
        form = AuthForm(mode=AuthMode.REGISTER)
        form.email, form.password, form.display_name = email, password, name
        run(_submit(form, _config_path(ctx)))

    @app.command("signin")
    def signin_cmd(
        ctx: typer.Context,
        email: Annotated[
            str | None, typer.Argument(help="Account email")
        ] = None,
        password: Annotated[
            str | None,
            typer.Option("--password", "-p", help="Account password"),
        ] = None,
        google: Annotated[
            bool, typer.Option("--google", help="Sign in with a Google ID token")
        ] = False,
        id_token: Annotated[
            str | None, typer.Option("--id-token", help="Google ID token")
        ] = None,
    ) -> None:
        """Sign in with email and password, or with Google."""
        if google:
            run(_google_signin(id_token, _config_path(ctx)))
            return
        if not email:
            email = typer.prompt("Email")
        if password is None:
            password = typer.prompt("Password", hide_input=True)
        form = AuthForm(mode=AuthMode.SIGN_IN)
        form.email, form.password = email, password
        run(_submit(form, _config_path(ctx)))

    @app.command("signout")
    def signout_cmd() -> None:
        """Sign out of the current account."""
        if load_session_user_id() is None:
            warning("Not signed in")
            return
        clear_session()
        success("Signed out")

    @app.command("whoami")
    def whoami_cmd(ctx: typer.Context) -> None:
        """Show the signed-in account."""
        run(_whoami(_config_path(ctx)))


async def _submit(form: AuthForm, config_path: Path | None) -> None:
    async with open_backend(config_path) as backend:
        user = await form.submit(backend.auth)
    save_session(user)
    verb = "Registered" if form.mode is AuthMode.REGISTER else "Signed in"
    success(f"{verb} as {user.label}")
    if user.is_admin:
        dim("You are the administrator and can see every user's todos.")


async def _google_signin(id_token: str | None, config_path: Path | None) -> None:
    async with open_backend(config_path) as backend:
        user = await backend.auth.sign_in_with_oauth("google", id_token)
    save_session(user)
    success(f"Signed in with Google as {user.label}")


async def _whoami(config_path: Path | None) -> None:
    async with open_backend(config_path) as backend:
        user = await require_user(backend)
    console.print(f"[bold]{user.label}[/bold] <{user.email}> ({user.role.value})")
