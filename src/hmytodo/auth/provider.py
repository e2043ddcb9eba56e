"""Auth provider backed by the document store.

Users live in the ``users`` collection; ``user_emails`` maps a normalized
email to its user id and is claimed atomically so two registrations can
never share an address.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable

from hmytodo.auth.oauth import IdentityResolver
from hmytodo.auth.passwords import PasswordHasher
from hmytodo.auth.policy import (
    claim_role,
    normalize_email,
    release_admin_claim,
    validate_email,
    validate_password,
)
from hmytodo.auth.types import (
    USERS_COLLECTION,
    AuthListener,
    Credentials,
    OAuthIdentity,
    Role,
    User,
)
from hmytodo.clock import Clock, utc_now
from hmytodo.config.models import AuthConfig
from hmytodo.errors import AuthError, StoreError
from hmytodo.store.types import DocumentStore, Query

logger = logging.getLogger(__name__)

EMAILS_COLLECTION = "user_emails"
PASSWORD_PROVIDER = "password"


class AuthProvider:
    """Email/password and OAuth sign-in with auth-change notifications."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        config: AuthConfig | None = None,
        hasher: PasswordHasher | None = None,
        resolvers: list[IdentityResolver] | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._config = config or AuthConfig()
        self._hasher = hasher or PasswordHasher()
        self._resolvers: dict[str, IdentityResolver] = {
            r.provider: r for r in resolvers or []
        }
        self._clock = clock
        self._current: User | None = None
        self._listeners: list[AuthListener] = []

    @property
    def current_user(self) -> User | None:
        return self._current

    def register_resolver(self, resolver: IdentityResolver) -> None:
        self._resolvers[resolver.provider] = resolver

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def on_auth_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener and call it right away with the current user.

        Listeners may be plain callables or coroutine functions.
        """
        self._listeners.append(listener)
        await _call(listener, self._current)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _set_current(self, user: User | None) -> None:
        self._current = user
        for listener in list(self._listeners):
            await _call(listener, user)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str, display_name: str = "") -> User:
        normalized = validate_email(email, self._config)
        validate_password(password, self._config)
        user = await self._register(
            normalized,
            display_name=display_name.strip(),
            password_hash=self._hasher.hash(password),
            provider=PASSWORD_PROVIDER,
        )
        logger.info(
            "user_registered", extra={"user.id": user.id, "user.role": user.role}
        )
        await self._set_current(user)
        return user

    async def sign_in(self, email: str, password: str) -> User:
        creds = await self._lookup(normalize_email(email))
        if creds is None or not self._hasher.verify(password, creds.password_hash):
            logger.info("sign_in_rejected")
            raise AuthError("Invalid email or password")
        logger.info("user_signed_in", extra={"user.id": creds.user.id})
        await self._set_current(creds.user)
        return creds.user

    async def sign_in_with_oauth(
        self, provider: str, credential: str | None = None
    ) -> User:
        resolver = self._resolvers.get(provider)
        if resolver is None:
            raise AuthError(f"Sign-in provider '{provider}' is not configured")
        identity = await resolver.resolve(credential)
        user = await self._user_for_identity(identity)
        logger.info(
            "user_signed_in",
            extra={"user.id": user.id, "auth.provider": provider},
        )
        await self._set_current(user)
        return user

    async def sign_out(self) -> None:
        if self._current is None:
            return
        logger.info("user_signed_out", extra={"user.id": self._current.id})
        await self._set_current(None)

    async def restore(self, user_id: str) -> User | None:
        """Resume a persisted session for user_id, if the user still exists."""
        doc = await self._store.get(USERS_COLLECTION, user_id)
        if doc is None:
            return None
        user = Credentials.from_document(doc).user
        await self._set_current(user)
        return user

    async def list_users(self) -> list[User]:
        docs = await self._store.query(Query(USERS_COLLECTION))
        return [Credentials.from_document(doc).user for doc in docs]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _user_for_identity(self, identity: OAuthIdentity) -> User:
        email = validate_email(identity.email, self._config)
        existing = await self._lookup(email)
        if existing is not None:
            return existing.user
        return await self._register(
            email,
            display_name=identity.display_name,
            password_hash=None,
            provider=identity.provider,
        )

    async def _register(
        self,
        email: str,
        *,
        display_name: str,
        password_hash: str | None,
        provider: str,
    ) -> User:
        if not await self._store.claim(EMAILS_COLLECTION, email, {"user_id": None}):
            raise AuthError("An account with this email already exists")

        role = Role.USER
        user_id: str | None = None
        try:
            now = self._clock()
            role = await claim_role(self._store, email, now)
            placeholder = User(id="", email=email, display_name=display_name, role=role)
            creds = Credentials(
                user=placeholder,
                password_hash=password_hash,
                provider=provider,
                created_at=now,
            )
            user_id = await self._store.create(USERS_COLLECTION, creds.to_record())
            await self._store.update(EMAILS_COLLECTION, email, {"user_id": user_id})
        except StoreError:
            logger.warning("user_register_failed", extra={"user.email": email})
            if user_id is not None:
                await self._store.delete(USERS_COLLECTION, user_id)
            if role is Role.ADMIN:
                await release_admin_claim(self._store)
            await self._store.delete(EMAILS_COLLECTION, email)
            raise

        return User(id=user_id, email=email, display_name=display_name, role=role)

    async def _lookup(self, email: str) -> Credentials | None:
        index = await self._store.get(EMAILS_COLLECTION, email)
        if index is None or not index.get("user_id"):
            return None
        doc = await self._store.get(USERS_COLLECTION, index.get("user_id"))
        return Credentials.from_document(doc) if doc else None


async def _call(listener: AuthListener, user: User | None) -> None:
    result = listener(user)
    if inspect.isawaitable(result):
        await result
