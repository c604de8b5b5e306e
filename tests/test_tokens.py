"""
Unit tests for the token codec (gamehub/tokens.py).

The codec signs tokens and verifies signatures, but leaves expiry to the
caller: decode() must hand back expired-but-genuine tokens and reject
anything forged or malformed with None rather than an exception.
"""

import base64
import json

import pytest

from gamehub.errors import SigningError
from gamehub.tokens import IdentityPayload, TokenCodec
from tests.conftest import TEST_SECRET

ALICE = IdentityPayload(id="USR0001", username="alice")


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


class TestIssue:
    def test_issue_then_decode_returns_original_payload(self, codec, clock):
        signed = codec.issue(ALICE, 3600)

        decoded = codec.decode(signed.token)

        assert decoded is not None
        assert decoded.payload == ALICE
        assert decoded.issued_at == int(clock())
        assert decoded.expires_at == int(clock()) + 3600
        assert signed.expires_at == decoded.expires_at

    def test_payload_never_contains_anything_but_identity_and_timestamps(self, codec):
        signed = codec.issue(ALICE, 60)

        claims = json.loads(_b64url_decode(signed.token.split(".")[1]))

        assert set(claims) == {"id", "username", "iat", "exp"}

    def test_explicit_issued_at_is_used_for_both_timestamps(self, codec):
        signed = codec.issue(ALICE, 100, issued_at=1_000_000)

        decoded = codec.decode(signed.token)

        assert decoded.issued_at == 1_000_000
        assert decoded.expires_at == 1_000_100

    def test_unsupported_algorithm_raises_signing_error(self, clock):
        broken = TokenCodec(TEST_SECRET, "HS999", clock=clock)

        with pytest.raises(SigningError):
            broken.issue(ALICE, 60)


class TestExpiry:
    def test_token_is_live_until_ttl_elapses(self, codec, clock):
        decoded = codec.decode(codec.issue(ALICE, 600).token)

        clock.advance(599)
        assert not decoded.is_expired(clock())

    def test_token_is_expired_once_ttl_elapses(self, codec, clock):
        decoded = codec.decode(codec.issue(ALICE, 600).token)

        clock.advance(600)
        assert decoded.is_expired(clock())

    def test_decode_still_returns_expired_tokens(self, codec, clock):
        token = codec.issue(ALICE, 60).token
        clock.advance(3600)

        decoded = codec.decode(token)

        assert decoded is not None
        assert decoded.payload == ALICE
        assert decoded.is_expired(clock())

    def test_expiry_compares_epoch_seconds_not_seconds_of_the_minute(self, codec, clock):
        # A token expiring in 30 minutes must stay live whatever the
        # current second of the minute is.
        clock.now = (int(clock()) // 60) * 60 + 59
        decoded = codec.decode(codec.issue(ALICE, 1800).token)

        assert not decoded.is_expired(clock())


class TestDecodeRejects:
    def test_missing_token_returns_none(self, codec):
        assert codec.decode(None) is None
        assert codec.decode("") is None

    def test_garbage_returns_none(self, codec):
        assert codec.decode("not-a-jwt-token") is None
        assert codec.decode("a.b.c") is None

    def test_wrong_signing_key_returns_none(self, codec, make_token):
        """A correctly shaped token signed by anyone else is rejected."""
        token = make_token(secret="another-key-of-sufficient-length-1234567")

        assert codec.decode(token) is None

    def test_tampered_payload_returns_none(self, codec):
        header, payload, signature = codec.issue(ALICE, 3600).token.split(".")
        claims = json.loads(_b64url_decode(payload))
        claims["username"] = "mallory"
        forged = ".".join([header, _b64url(json.dumps(claims).encode()), signature])

        assert codec.decode(forged) is None

    def test_tampered_expiry_returns_none(self, codec):
        header, payload, signature = codec.issue(ALICE, 60).token.split(".")
        claims = json.loads(_b64url_decode(payload))
        claims["exp"] += 10 * 365 * 24 * 3600
        forged = ".".join([header, _b64url(json.dumps(claims).encode()), signature])

        assert codec.decode(forged) is None

    def test_flipped_signature_byte_returns_none(self, codec):
        token = codec.issue(ALICE, 60).token
        last = token[-2]
        flipped = token[:-2] + ("A" if last != "A" else "B") + token[-1]

        assert codec.decode(flipped) is None

    def test_token_without_exp_returns_none(self, codec, make_token):
        assert codec.decode(make_token(include_exp=False)) is None

    def test_token_without_identity_claims_returns_none(self, codec, make_token):
        assert codec.decode(make_token(user_id=None)) is None
        assert codec.decode(make_token(username=None)) is None

    def test_non_string_identity_claims_return_none(self, codec, make_token):
        assert codec.decode(make_token(user_id=42)) is None
        assert codec.decode(make_token(username=["alice"])) is None
