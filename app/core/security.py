"""Password hashing (Argon2id) and password policy for authentication."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache

import argon2
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from app.core.config import Settings, get_settings
from app.core.errors import AppError, InvalidInputError

logger = logging.getLogger(__name__)

# Min/max lengths for identifier and password validation.
IDENTIFIER_MAX_LEN = 254
USERNAME_MAX_LEN = 50
NAME_MAX_LEN = 50
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

_SPECIAL_CHAR_RE = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class HashingConfig:
    """Argon2id cost parameters. memory_cost is in KiB."""

    memory_cost: int = 65536
    time_cost: int = 3
    parallelism: int = 2
    hash_len: int = 32
    salt_len: int = 16

    @classmethod
    def from_settings(cls, settings: Settings) -> HashingConfig:
        return cls(
            memory_cost=settings.ARGON2_MEMORY_COST,
            time_cost=settings.ARGON2_TIME_COST,
            parallelism=settings.ARGON2_PARALLELISM,
            hash_len=settings.ARGON2_HASH_LEN,
        )


class PasswordHasher:
    """
    Salted Argon2id hashing with the configured cost.

    All methods are CPU-bound and deliberately slow; async callers should run
    them in a worker thread.
    """

    def __init__(self, config: HashingConfig | None = None) -> None:
        self.config = config or HashingConfig()
        self._hasher = argon2.PasswordHasher(
            time_cost=self.config.time_cost,
            memory_cost=self.config.memory_cost,
            parallelism=self.config.parallelism,
            hash_len=self.config.hash_len,
            salt_len=self.config.salt_len,
            type=argon2.Type.ID,
        )

    def hash(self, password: str) -> str:
        """Hash a plain-text password for storage. Do not store plain passwords."""
        if not isinstance(password, str) or len(password) == 0:
            raise InvalidInputError("Invalid password")
        try:
            return self._hasher.hash(password)
        except argon2.exceptions.HashingError as e:
            logger.error("Failed to hash password", extra={"error_type": type(e).__name__})
            raise AppError("Failed to hash password") from e

    def verify(self, password: str, hashed: str) -> bool:
        """Verify a plain password against a stored hash. Never raises."""
        if not isinstance(password, str) or not isinstance(hashed, str):
            logger.warning("Password verification called with non-string input")
            return False
        try:
            return self._hasher.verify(hashed, password)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as e:
            logger.warning(
                "Stored password hash could not be verified",
                extra={"error_type": type(e).__name__},
            )
            return False

    def needs_rehash(self, hashed: str) -> bool:
        """True when the hash was produced with parameters other than the current ones."""
        try:
            return self._hasher.check_needs_rehash(hashed)
        except (InvalidHashError, ValueError, TypeError) as e:
            logger.error(
                "Failed to check if password needs rehash",
                extra={"error_type": type(e).__name__},
            )
            return True


def validate_password_strength(password: str) -> tuple[bool, str]:
    """Check password complexity. Returns (is_valid, error_message)."""
    if len(password) < PASSWORD_MIN_LEN:
        return False, f"Password must be at least {PASSWORD_MIN_LEN} characters long"
    if len(password) > PASSWORD_MAX_LEN:
        return False, f"Password must be at most {PASSWORD_MAX_LEN} characters long"
    if not re.search(r"[A-Z]", password):
        return False, "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return False, "Password must contain at least one lowercase letter"
    if not re.search(r"\d", password):
        return False, "Password must contain at least one number"
    if not _SPECIAL_CHAR_RE.search(password):
        return False, "Password must contain at least one special character"
    return True, ""


@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Process-wide hasher built from settings."""
    return PasswordHasher(HashingConfig.from_settings(get_settings()))
