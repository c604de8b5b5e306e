"""
Signing and decoding of access/refresh tokens.

Tokens are JWTs signed with the server's key (HS256 by default). Each token
carries the identity payload and two timestamps in epoch seconds:

    {
        "id": "USR0001",        # identity id
        "username": "alice",    # identity username
        "iat": 1760860800,      # issued at
        "exp": 1760864400       # expires at
    }

The server keeps no record of issued tokens. A token is valid when its
signature verifies and its expiry lies in the future.

decode() deliberately does not reject expired tokens: it returns the
decoded token and the caller compares `expires_at` against the clock. This
lets the session resolver tell an expired-but-genuine access token apart from
garbage, and lets tests move the clock without re-signing tokens.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

import jwt

from gamehub.errors import SigningError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class IdentityPayload:
    """
    Minimal claims carried by every token. Never includes the password digest.
    """

    id: str
    username: str

    def to_claims(self) -> dict:
        return {"id": self.id, "username": self.username}


@dataclass(frozen=True)
class DecodedToken:
    """A token whose signature verified. Expiry has NOT been checked."""

    payload: IdentityPayload
    issued_at: int
    expires_at: int

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= int(now)


@dataclass(frozen=True)
class SignedToken:
    token: str
    expires_at: int


class TokenCodec:
    """
    Issues and decodes tokens with a single signing key.

    Args:
        signing_key: Secret used for both signing and verification
        algorithm: JWT algorithm name (e.g. "HS256")
        clock: Returns the current time in epoch seconds; injectable for tests
    """

    def __init__(self, signing_key: str, algorithm: str = "HS256", clock: Clock = time.time):
        self.signing_key = signing_key
        self.algorithm = algorithm
        self.clock = clock

    def now(self) -> int:
        return int(self.clock())

    def issue(self, payload: IdentityPayload, ttl_seconds: int, issued_at: int | None = None) -> SignedToken:
        """
        Sign a token for `payload` expiring `ttl_seconds` after `issued_at`
        (default: now).

        Raises:
            SigningError: If the key or algorithm can't produce a signature
        """
        if issued_at is None:
            issued_at = self.now()
        expires_at = issued_at + int(ttl_seconds)
        claims = {**payload.to_claims(), "iat": issued_at, "exp": expires_at}
        try:
            token = jwt.encode(claims, self.signing_key, algorithm=self.algorithm)
        except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as e:
            raise SigningError(f"Unable to sign token: {e}") from e
        return SignedToken(token=token, expires_at=expires_at)

    def decode(self, token: str | None) -> DecodedToken | None:
        """
        Verify the signature of `token` and extract its claims.

        Returns None for a missing token, a malformed token, a bad signature
        or claims of the wrong shape. Expired tokens are returned as-is.
        """
        if not token:
            return None

        try:
            claims = jwt.decode(
                token,
                self.signing_key,
                algorithms=[self.algorithm],
                options={
                    "require": ["exp", "iat"],
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.InvalidTokenError as e:
            logger.debug("Token rejected: %s", e)
            return None

        user_id = claims.get("id")
        username = claims.get("username")
        if not isinstance(user_id, str) or not isinstance(username, str):
            logger.debug("Token rejected: identity claims missing or not strings")
            return None

        try:
            issued_at = int(claims["iat"])
            expires_at = int(claims["exp"])
        except (TypeError, ValueError):
            return None

        return DecodedToken(
            payload=IdentityPayload(id=user_id, username=username),
            issued_at=issued_at,
            expires_at=expires_at,
        )
