"""Process-wide backend wiring.

One store client and one auth provider are built at startup and injected
into every session and engine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from hmytodo.auth import AuthProvider, GoogleIdentityResolver, IdentityResolver
from hmytodo.clock import Clock, utc_now
from hmytodo.config.models import HmyTodoConfig
from hmytodo.store import DocumentStore, create_store

logger = logging.getLogger(__name__)


@dataclass
class Backend:
    """The configured connection to the store and auth provider."""

    config: HmyTodoConfig
    store: DocumentStore
    auth: AuthProvider

    async def close(self) -> None:
        await self.store.close()


async def create_backend(
    config: HmyTodoConfig,
    *,
    store: DocumentStore | None = None,
    clock: Clock = utc_now,
) -> Backend:
    """Create the backend described by config.

    Args:
        config: Application configuration.
        store: Pre-built store to use instead of the configured backend.
        clock: Time source shared by auth and todos.
    """
    if store is None:
        store = await create_store(config.store)

    resolvers: list[IdentityResolver] = []
    if config.auth.oauth_client_id:
        resolvers.append(GoogleIdentityResolver(config.auth.oauth_client_id))

    auth = AuthProvider(store, config=config.auth, resolvers=resolvers, clock=clock)
    logger.debug(
        "backend_created",
        extra={"store.backend": config.store.backend, "auth.resolvers": len(resolvers)},
    )
    return Backend(config=config, store=store, auth=auth)
