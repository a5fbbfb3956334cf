from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Protocol

PBKDF2_SCHEME = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 120000


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str: ...

    def verify(self, stored_hash: str, password: str) -> bool: ...


def _password_hash(password: str, salt: str, iterations: int) -> str:
    raw = hashlib.pbkdf2_hmac(
        "sha256",
        (password or "").encode("utf-8"),
        salt.encode("utf-8"),
        iterations,
    )
    return raw.hex()


class Pbkdf2PasswordHasher:
    """Salted PBKDF2 hashes stored as ``pbkdf2_sha256$iterations$salt$digest``."""

    def __init__(self, iterations: int = DEFAULT_ITERATIONS):
        self.iterations = iterations

    def hash(self, password: str) -> str:
        salt = secrets.token_hex(16)
        digest = _password_hash(password, salt, self.iterations)
        return f"{PBKDF2_SCHEME}${self.iterations}${salt}${digest}"

    def verify(self, stored_hash: str, password: str) -> bool:
        try:
            scheme, raw_iterations, salt, digest = (stored_hash or "").split("$", 3)
            iterations = int(raw_iterations)
        except ValueError:
            return False
        if scheme != PBKDF2_SCHEME or iterations < 1:
            return False
        candidate = _password_hash(password, salt, iterations)
        return hmac.compare_digest(candidate, digest)
