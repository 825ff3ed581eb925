"""Password hashing service using passlib."""

from passlib.context import CryptContext

DEFAULT_ROUNDS = 29000


class PasswordHasher:
    """Hashes and verifies passwords with pbkdf2_sha256.

    Uses passlib's CryptContext for salted hashing with a configurable
    work factor.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        """Initialize the hasher.

        Args:
            rounds: pbkdf2 iteration count (higher = slower + more secure)
        """
        self._context = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
            pbkdf2_sha256__rounds=rounds,
            pbkdf2_sha256__min_rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Hash a password.

        Returns:
            Modular-crypt hash string (includes algorithm, rounds, salt, and hash)
        """
        return self._context.hash(password)

    def verify(self, password: str, hash: str) -> bool:
        """Verify a password against a hash. Malformed hashes never verify."""
        try:
            return self._context.verify(password, hash)
        except (TypeError, ValueError):
            return False

    def is_hash(self, value: object) -> bool:
        """Check whether ``value`` is already a hash this context understands."""
        if not isinstance(value, str) or not value:
            return False
        return self._context.identify(value) is not None

    def needs_rehash(self, hash: str) -> bool:
        """Check if a hash uses fewer rounds than this hasher requires."""
        return self._context.needs_update(hash)
