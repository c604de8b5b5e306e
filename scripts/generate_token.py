"""
CLI utility to mint an access/refresh token pair for an existing identity.

Useful for calling protected routes from curl without going through
/auth/login. The tokens are signed with the same codec and TTLs as the
server, so they must be generated with the server's signing key.

Usage examples:

    # Pair for USR0001 with the key and TTLs from the environment / .env
    python -m scripts.generate_token --id USR0001 --username alice

    # Custom secret (must match GAMEHUB_SIGNING_KEY on the server)
    python -m scripts.generate_token --id USR0001 --username alice --secret my-prod-secret

    # Already-expired access token (exercises the refresh fallback)
    python -m scripts.generate_token --id USR0001 --username alice --access-hours -1

The generated tokens can be used with curl:

    curl http://localhost:8080/game/all \\
      --cookie "accessToken=<access>; refreshToken=<refresh>"
"""

import argparse
import datetime

from gamehub.config import Settings
from gamehub.tokens import IdentityPayload, TokenCodec


def generate_tokens(
    user_id: str,
    username: str,
    secret: str,
    algorithm: str = "HS256",
    access_hours: float = 1.0,
    refresh_hours: float = 168.0,
) -> dict:
    """
    Sign an access and a refresh token for the given identity.

    Args:
        user_id: Identity id (e.g. "USR0001")
        username: Identity username
        secret: The signing key (must match the server's GAMEHUB_SIGNING_KEY)
        algorithm: JWT signing algorithm (default: HS256)
        access_hours: Access token lifetime (negative = already expired)
        refresh_hours: Refresh token lifetime (negative = already expired)

    Returns:
        {"accessToken": ..., "refreshToken": ..., "accessExpiresAt": ..., "refreshExpiresAt": ...}
    """
    codec = TokenCodec(secret, algorithm)
    payload = IdentityPayload(id=user_id, username=username)
    issued_at = codec.now()
    access = codec.issue(payload, int(access_hours * 3600), issued_at=issued_at)
    refresh = codec.issue(payload, int(refresh_hours * 3600), issued_at=issued_at)
    return {
        "accessToken": access.token,
        "refreshToken": refresh.token,
        "accessExpiresAt": access.expires_at,
        "refreshExpiresAt": refresh.expires_at,
    }


def _as_iso(epoch_seconds: int) -> str:
    return datetime.datetime.fromtimestamp(epoch_seconds, tz=datetime.timezone.utc).isoformat()


def main(argv: list[str] | None = None) -> None:
    defaults = Settings()

    parser = argparse.ArgumentParser(
        description="Generate an access/refresh token pair for the games backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--id", required=True, help="Identity id, e.g. USR0001")
    parser.add_argument("--username", required=True, help="Identity username")
    parser.add_argument(
        "--secret",
        default=defaults.signing_key,
        help="Signing key (default: GAMEHUB_SIGNING_KEY)",
    )
    parser.add_argument("--algorithm", default=defaults.jwt_algorithm)
    parser.add_argument(
        "--access-hours",
        type=float,
        default=defaults.access_token_ttl_hours,
        help="Access token lifetime in hours (negative = already expired)",
    )
    parser.add_argument(
        "--refresh-hours",
        type=float,
        default=defaults.refresh_token_ttl_hours,
        help="Refresh token lifetime in hours (negative = already expired)",
    )

    args = parser.parse_args(argv)

    tokens = generate_tokens(
        user_id=args.id,
        username=args.username,
        secret=args.secret,
        algorithm=args.algorithm,
        access_hours=args.access_hours,
        refresh_hours=args.refresh_hours,
    )

    print(f"Identity:         {args.id} ({args.username})")
    print(f"Access expires:   {_as_iso(tokens['accessExpiresAt'])}")
    print(f"Refresh expires:  {_as_iso(tokens['refreshExpiresAt'])}")
    print()
    print(f"Access token:  {tokens['accessToken']}")
    print(f"Refresh token: {tokens['refreshToken']}")
    print()
    print("Usage with curl:")
    print("  curl http://localhost:8080/game/all \\")
    print(f'    --cookie "accessToken={tokens["accessToken"]}; refreshToken={tokens["refreshToken"]}"')


if __name__ == "__main__":
    main()
