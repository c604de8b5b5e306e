"""
Account registration and credential checks.

Credential records are stored as {id, username, password} where `password`
holds the bcrypt digest. Only the identity payload {id, username} ever leaves
this module.
"""

import logging

from pymongo.errors import DuplicateKeyError

from gamehub.errors import (
    AuthenticationError,
    InvalidPasswordError,
    InvalidUsernameError,
    PasswordMismatchError,
    UsernameTakenError,
)
from gamehub.passwords import MAX_PASSWORD_BYTES, PasswordHasher, fits_bcrypt
from gamehub.store import CredentialStore, duplicate_key_fields
from gamehub.tokens import IdentityPayload

logger = logging.getLogger(__name__)

USER_ID_PREFIX = "USR"


def _is_valid_credential(value) -> bool:
    return isinstance(value, str) and value != "" and not any(c.isspace() for c in value)


class CredentialVerifier:
    """Checks a username/password pair against the stored digest."""

    def __init__(self, users: CredentialStore, hasher: PasswordHasher):
        self.users = users
        self.hasher = hasher

    def verify(self, username, password) -> IdentityPayload:
        """
        Return the identity for a correct username/password pair.

        Raises:
            AuthenticationError: Unknown username or wrong password. Both
                cases raise the same error so callers can't tell which one
                failed.
        """
        if not isinstance(username, str) or not isinstance(password, str):
            raise AuthenticationError()

        record = self.users.find_by_username(username)
        if record is None:
            self.hasher.matches(password, self.hasher.decoy_digest)
            logger.info("Login rejected", extra={"event_data": {"reason": "unknown_username"}})
            raise AuthenticationError()

        if not self.hasher.matches(password, record.get("password", "")):
            logger.info(
                "Login rejected",
                extra={"event_data": {"reason": "wrong_password", "user_id": record.get("id")}},
            )
            raise AuthenticationError()

        return IdentityPayload(id=record["id"], username=record["username"])


class IdentityRegistration:
    """
    Creates credential records with sequential USR0001-style ids.

    Args:
        users: Credential store
        hasher: Password digester
        id_attempts: How many times to re-allocate an id that collided with a
            concurrent registration (needs the unique index on `id`)
    """

    def __init__(self, users: CredentialStore, hasher: PasswordHasher, id_attempts: int = 1):
        self.users = users
        self.hasher = hasher
        self.id_attempts = id_attempts

    @staticmethod
    def validate(username, password, confirm_password) -> None:
        if not _is_valid_credential(username):
            raise InvalidUsernameError()
        if not _is_valid_credential(password):
            raise InvalidPasswordError()
        if not fits_bcrypt(password):
            raise InvalidPasswordError(f"the field password must be at most {MAX_PASSWORD_BYTES} bytes long")
        if password != confirm_password:
            raise PasswordMismatchError()

    def register(self, username, password, confirm_password) -> IdentityPayload:
        """
        Validate the input, store a new credential record and return its identity.

        Raises:
            InvalidUsernameError, InvalidPasswordError, PasswordMismatchError:
                Input rejected before touching the store
            UsernameTakenError: A record with this username already exists
        """
        self.validate(username, password, confirm_password)

        if self.users.find_by_username(username) is not None:
            raise UsernameTakenError()

        record = {"username": username, "password": self.hasher.digest(password)}
        try:
            stored = self.users.insert_sequenced(USER_ID_PREFIX, record, attempts=self.id_attempts)
        except DuplicateKeyError as e:
            # Lost a race with a concurrent registration of the same username.
            if "username" in duplicate_key_fields(e):
                raise UsernameTakenError() from e
            raise

        logger.info("User registered", extra={"event_data": {"user_id": stored["id"]}})
        return IdentityPayload(id=stored["id"], username=stored["username"])
