"""Authentication.

Public API:
- AuthProvider: Sign-up, sign-in (email or OAuth), sign-out, auth-change feed
- AuthForm / AuthMode: Two-mode sign-in/register form
- GoogleIdentityResolver: Google ID token verification
- PasswordHasher: PBKDF2 password hashing

Types:
- User, Role, OAuthIdentity
"""

from hmytodo.auth.form import AuthForm, AuthMode
from hmytodo.auth.oauth import GoogleIdentityResolver, IdentityResolver
from hmytodo.auth.passwords import PasswordHasher
from hmytodo.auth.provider import AuthProvider
from hmytodo.auth.types import OAuthIdentity, Role, User

__all__ = [
    "AuthForm",
    "AuthMode",
    "AuthProvider",
    "GoogleIdentityResolver",
    "IdentityResolver",
    "OAuthIdentity",
    "PasswordHasher",
    "Role",
    "User",
]
