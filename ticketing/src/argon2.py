from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from ticketing.src.schemas import User

passwordHasher = PasswordHasher(encoding="utf-8")


def makePassword(password: str) -> str:
    """Argon2 hash stored in the `password` field of a user document."""
    return passwordHasher.hash(password)


def checkPassword(user: User, password: str) -> bool:
    """
    Check a plain-text password against the hash held by a user document.

    Args:
        user (User): The stored user document.
        password (str): The plain-text password to check.

    Returns:
        bool: True if the password matches. A malformed stored hash is a
        mismatch.
    """
    try:
        return passwordHasher.verify(user.password, password)
    except (VerificationError, InvalidHashError):
        return False


def needsRehash(user: User) -> bool:
    # Hashes made with older hasher parameters should be replaced on login
    return passwordHasher.check_needs_rehash(user.password)
