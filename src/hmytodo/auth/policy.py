"""Registration policy: email/password rules and first-admin assignment."""

from __future__ import annotations

import logging
import re
from datetime import datetime

from hmytodo.auth.types import FIRST_ADMIN_DOC, META_COLLECTION, Role
from hmytodo.config.models import AuthConfig
from hmytodo.errors import ValidationError
from hmytodo.store.types import DocumentStore, Timestamp

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@([^@\s]+\.[^@\s]+)$")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_email(email: str, config: AuthConfig) -> str:
    """Return the normalized email or raise ValidationError."""
    normalized = normalize_email(email)
    match = _EMAIL_RE.match(normalized)
    if not match:
        raise ValidationError("Please enter a valid email address")
    domain = match.group(1)
    if config.allowed_email_domains and domain not in config.allowed_email_domains:
        allowed = ", ".join(config.allowed_email_domains)
        if config.allowed_email_domains == ["gmail.com"]:
            raise ValidationError("Please use a Gmail address")
        raise ValidationError(f"Email domain must be one of: {allowed}")
    return normalized


def validate_password(password: str, config: AuthConfig) -> None:
    if len(password or "") < config.min_password_length:
        raise ValidationError(
            f"Password must be at least {config.min_password_length} characters"
        )


async def claim_role(store: DocumentStore, email: str, now: datetime) -> Role:
    """Atomically claim the first-admin slot; only the first caller wins."""
    won = await store.claim(
        META_COLLECTION,
        FIRST_ADMIN_DOC,
        {"email": email, "claimed_at": Timestamp.from_datetime(now)},
    )
    if won:
        logger.info("first_admin_claimed")
        return Role.ADMIN
    return Role.USER


async def release_admin_claim(store: DocumentStore) -> None:
    """Give the first-admin slot back after a registration that did not finish."""
    await store.delete(META_COLLECTION, FIRST_ADMIN_DOC)
    logger.info("first_admin_released")
