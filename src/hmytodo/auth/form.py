"""Single auth form with two explicit modes: sign in and register."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from hmytodo.auth.provider import AuthProvider
from hmytodo.auth.types import User


class AuthMode(StrEnum):
    SIGN_IN = "sign_in"
    REGISTER = "register"

    @property
    def other(self) -> AuthMode:
        return AuthMode.REGISTER if self is AuthMode.SIGN_IN else AuthMode.SIGN_IN


@dataclass
class AuthForm:
    """Form state. display_name only exists in REGISTER mode."""

    mode: AuthMode = AuthMode.SIGN_IN
    email: str = ""
    password: str = ""
    display_name: str = ""

    @property
    def title(self) -> str:
        return "Create an account" if self.mode is AuthMode.REGISTER else "Sign in"

    def switch(self, mode: AuthMode | None = None) -> None:
        """Change mode, clearing everything that does not carry across."""
        target = mode or self.mode.other
        if target is self.mode:
            return
        self.mode = target
        self.password = ""
        self.display_name = ""

    async def submit(self, auth: AuthProvider) -> User:
        if self.mode is AuthMode.REGISTER:
            user = await auth.sign_up(self.email, self.password, self.display_name)
        else:
            user = await auth.sign_in(self.email, self.password)
        self.password = ""
        return user
