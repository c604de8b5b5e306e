"""Password digesting with bcrypt."""

import functools
import secrets

import bcrypt

# bcrypt only reads this many bytes of input; newer releases reject longer passwords.
MAX_PASSWORD_BYTES = 72


def fits_bcrypt(password: str) -> bool:
    return len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES


class PasswordHasher:
    """
    Hashes and checks passwords with a fixed bcrypt cost.

    Args:
        work_factor: bcrypt log2 rounds (4..31)
    """

    def __init__(self, work_factor: int = 12):
        self.work_factor = work_factor

    def digest(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.work_factor)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def matches(self, password: str, digest: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), digest.encode("utf-8"))
        except ValueError:
            # Stored value isn't a bcrypt hash, or the password is over-long.
            return False

    @functools.cached_property
    def decoy_digest(self) -> str:
        """
        Digest of a random password at this hasher's cost. Comparing against
        it for unknown usernames makes that failure as slow as a wrong password.
        """
        return self.digest(secrets.token_urlsafe(16))
