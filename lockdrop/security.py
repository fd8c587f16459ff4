import bcrypt

# bcrypt only reads the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted bcrypt hashing for drop and admin passwords."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash *password* with a fresh random salt."""
        return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, password_hash: str | None) -> bool:
        """Check *password* against a stored hash. Malformed hashes never match."""
        if not password_hash:
            return False
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except ValueError:
            return False
