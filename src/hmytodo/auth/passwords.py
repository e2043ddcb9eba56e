"""Salted PBKDF2-SHA256 password hashing."""

import base64
import hashlib
import hmac
import secrets
from dataclasses import dataclass

ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 390_000


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _unb64(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


@dataclass(frozen=True)
class PasswordHasher:
    """Encodes hashes as ``pbkdf2_sha256$<iterations>$<salt>$<digest>``."""

    iterations: int = DEFAULT_ITERATIONS
    salt_bytes: int = 16

    def hash(self, password: str) -> str:
        salt = secrets.token_bytes(self.salt_bytes)
        digest = hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), salt, self.iterations
        )
        return f"{ALGORITHM}${self.iterations}${_b64(salt)}${_b64(digest)}"

    def verify(self, password: str, encoded: str | None) -> bool:
        if not encoded:
            return False
        try:
            algorithm, iterations, salt, digest = encoded.split("$")
            if algorithm != ALGORITHM:
                return False
            expected = _unb64(digest)
            actual = hashlib.pbkdf2_hmac(
                "sha256", password.encode("utf-8"), _unb64(salt), int(iterations)
            )
        except ValueError:
            return False
        return hmac.compare_digest(expected, actual)
