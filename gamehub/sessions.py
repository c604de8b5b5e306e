"""
Session resolution and token (re)issuance for protected routes.

A session is carried by two cookies, `accessToken` and `refreshToken`. For
every protected request:

    1. SessionResolver.resolve() picks the identity from the access token if
       it is genuine and unexpired, otherwise from the refresh token, and
       flags the session for reissue in the second case.
    2. TokenIssuer.maybe_issue() signs a fresh access + refresh pair when the
       session is flagged, and nothing otherwise.

Resolution table:

    access token              refresh token             outcome
    ------------------------  ------------------------  ------------------------
    absent                    absent                    UnauthorizedError
    valid                     any                       access payload, no reissue
    absent/expired/invalid    valid                     refresh payload, reissue
    absent/expired/invalid    absent/expired/invalid    UnauthorizedError

An expired token and an undecodable one behave the same way; only the log
entry differs.
"""

import logging
from dataclasses import dataclass

from gamehub.errors import UnauthorizedError
from gamehub.tokens import DecodedToken, IdentityPayload, TokenCodec

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


@dataclass(frozen=True)
class TokenPair:
    """Tokens presented by the client. Empty strings count as absent."""

    access_token: str | None = None
    refresh_token: str | None = None

    @classmethod
    def from_cookies(cls, cookies) -> "TokenPair":
        return cls(
            access_token=cookies.get(ACCESS_COOKIE) or None,
            refresh_token=cookies.get(REFRESH_COOKIE) or None,
        )

    @property
    def empty(self) -> bool:
        return not self.access_token and not self.refresh_token


@dataclass(frozen=True)
class Session:
    """
    Outcome of a successful resolution.

    Attributes:
        payload: Identity the request acts as
        reissue: True when the access token was unusable and the identity came
                 from the refresh token
    """

    payload: IdentityPayload
    reissue: bool = False


@dataclass(frozen=True)
class IssuedTokens:
    """A freshly signed pair with the expiry of each token (epoch seconds)."""

    access_token: str
    access_expires_at: int
    refresh_token: str
    refresh_expires_at: int


class SessionResolver:
    def __init__(self, codec: TokenCodec):
        self.codec = codec

    def _usable(self, token: str | None, kind: str) -> DecodedToken | None:
        if not token:
            return None
        decoded = self.codec.decode(token)
        if decoded is None:
            logger.info("Token unusable", extra={"event_data": {"token": kind, "reason": "invalid"}})
            return None
        if decoded.is_expired(self.codec.now()):
            logger.info(
                "Token unusable",
                extra={"event_data": {"token": kind, "reason": "expired", "user_id": decoded.payload.id}},
            )
            return None
        return decoded

    def resolve(self, tokens: TokenPair) -> Session:
        """
        Work out who the request is from.

        Raises:
            UnauthorizedError: Neither token yields a genuine, unexpired identity
        """
        if tokens.empty:
            logger.info("Session rejected", extra={"event_data": {"decision": "rejected", "reason": "no_tokens"}})
            raise UnauthorizedError()

        access = self._usable(tokens.access_token, "access")
        if access is not None:
            logger.debug(
                "Session resolved",
                extra={"event_data": {"decision": "access_token", "user_id": access.payload.id}},
            )
            return Session(payload=access.payload, reissue=False)

        refresh = self._usable(tokens.refresh_token, "refresh")
        if refresh is not None:
            logger.info(
                "Session resolved",
                extra={"event_data": {"decision": "refresh_token", "user_id": refresh.payload.id}},
            )
            return Session(payload=refresh.payload, reissue=True)

        logger.info("Session rejected", extra={"event_data": {"decision": "rejected", "reason": "tokens_invalid"}})
        raise UnauthorizedError()


class TokenIssuer:
    """
    Signs access + refresh pairs. The two tokens are always issued together
    from the same clock reading so their windows stay aligned.
    """

    def __init__(self, codec: TokenCodec, access_ttl_seconds: int, refresh_ttl_seconds: int):
        self.codec = codec
        self.access_ttl_seconds = access_ttl_seconds
        self.refresh_ttl_seconds = refresh_ttl_seconds

    def issue(self, payload: IdentityPayload) -> IssuedTokens:
        issued_at = self.codec.now()
        access = self.codec.issue(payload, self.access_ttl_seconds, issued_at=issued_at)
        refresh = self.codec.issue(payload, self.refresh_ttl_seconds, issued_at=issued_at)
        return IssuedTokens(
            access_token=access.token,
            access_expires_at=access.expires_at,
            refresh_token=refresh.token,
            refresh_expires_at=refresh.expires_at,
        )

    def maybe_issue(self, payload: IdentityPayload, reissue: bool) -> IssuedTokens | None:
        """Issue a new pair when `reissue` is set (refresh fallback, login); else None."""
        if not reissue:
            return None
        return self.issue(payload)
