"""
HTTP server: auth routes, the games catalog and the session pipeline.

Routes:
    POST   /auth/register          create an account (200, empty body)
    POST   /auth/login             set accessToken/refreshToken cookies
    POST   /auth/logout            clear both cookies
    GET    /game/all               list games            (session required)
    POST   /game/new               create a game         (session required)
    DELETE /game/delete/{id}       delete a game         (session required)
    PATCH  /game/update/{id}       update a game         (session required)
    GET    /health                 liveness probe

With GAMEHUB_MODE=dev, developer routes are mounted under /auth/dev and
/game/dev (token signing/decoding, short-lived login, unprotected catalog).

Session pipeline for protected routes:

    1. Read the accessToken / refreshToken cookies
    2. SessionResolver decides who the request is from, or fails with 401
    3. TokenIssuer signs a new pair if the identity came from the refresh token
    4. The handler runs with the resolved Session passed in explicitly
    5. A reissued pair is attached to the handler's response as cookies

Running the server:
    python -m gamehub.server
"""

import datetime
import functools
import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass

import uvicorn
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles

from gamehub.accounts import CredentialVerifier, IdentityRegistration
from gamehub.catalog import GameCatalog
from gamehub.config import Settings, settings
from gamehub.errors import GameHubError, InvalidPasswordError, ValidationError
from gamehub.logs import configure_logging
from gamehub.passwords import MAX_PASSWORD_BYTES, PasswordHasher, fits_bcrypt
from gamehub.sessions import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    IssuedTokens,
    Session,
    SessionResolver,
    TokenIssuer,
    TokenPair,
)
from gamehub.store import CredentialStore, GameStore, connect
from gamehub.tokens import IdentityPayload, TokenCodec

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "something went wrong with the server"


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Services:
    """Everything the route handlers need, built once per application."""

    settings: Settings
    codec: TokenCodec
    hasher: PasswordHasher
    verifier: CredentialVerifier
    registration: IdentityRegistration
    resolver: SessionResolver
    issuer: TokenIssuer
    catalog: GameCatalog


def build_services(
    config: Settings,
    users: CredentialStore,
    games: GameStore,
    hasher: PasswordHasher | None = None,
    clock=time.time,
) -> Services:
    hasher = hasher or PasswordHasher(config.work_factor)
    codec = TokenCodec(config.signing_key, config.jwt_algorithm, clock=clock)
    return Services(
        settings=config,
        codec=codec,
        hasher=hasher,
        verifier=CredentialVerifier(users, hasher),
        registration=IdentityRegistration(users, hasher, id_attempts=config.id_allocation_attempts),
        resolver=SessionResolver(codec),
        issuer=TokenIssuer(codec, config.access_token_ttl_seconds, config.refresh_token_ttl_seconds),
        catalog=GameCatalog(games, id_attempts=config.id_allocation_attempts),
    )


def _services(request: Request) -> Services:
    return request.app.state.services


# ---------------------------------------------------------------------------
# Request / response helpers
# ---------------------------------------------------------------------------


async def read_fields(request: Request) -> dict:
    """Request body as a dict. Accepts JSON and URL-encoded/multipart forms."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    body = await request.body()
    if not body:
        return {}
    try:
        data = json.loads(body)
    except ValueError:
        raise ValidationError("the request body must be JSON or a form") from None
    return data if isinstance(data, dict) else {}


def _cookie_expiry(epoch_seconds: int) -> datetime.datetime:
    return datetime.datetime.fromtimestamp(epoch_seconds, tz=datetime.timezone.utc)


def set_token_cookies(response: Response, issued: IssuedTokens, buffer_seconds: int) -> None:
    """
    Attach a token pair as httpOnly cookies.

    Each cookie outlives its token by `buffer_seconds` so a client whose
    clock runs slightly fast still sends the token until the server
    considers it expired.
    """
    response.set_cookie(
        ACCESS_COOKIE,
        issued.access_token,
        expires=_cookie_expiry(issued.access_expires_at + buffer_seconds),
        httponly=True,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        issued.refresh_token,
        expires=_cookie_expiry(issued.refresh_expires_at + buffer_seconds),
        httponly=True,
    )


def _game_json(game: dict) -> dict:
    return {
        key: value.isoformat() if isinstance(value, datetime.datetime) else value
        for key, value in game.items()
        if key != "_id"
    }


def protected(handler):
    """
    Run the session pipeline before `handler(request, session)`.

    Fails with 401 (UnauthorizedError) when no usable token is presented.
    """

    @functools.wraps(handler)
    async def endpoint(request: Request) -> Response:
        services = _services(request)
        session = services.resolver.resolve(TokenPair.from_cookies(request.cookies))
        issued = services.issuer.maybe_issue(session.payload, session.reissue)

        response = await handler(request, session)

        if issued is not None:
            set_token_cookies(response, issued, services.settings.cookie_expiry_buffer_seconds)
        return response

    return endpoint


def unprotected(handler):
    """Call `handler(request, None)`; used by the dev catalog routes."""

    @functools.wraps(handler)
    async def endpoint(request: Request) -> Response:
        return await handler(request, None)

    return endpoint


# ---------------------------------------------------------------------------
# Auth routes
# ---------------------------------------------------------------------------


async def register(request: Request) -> Response:
    fields = await read_fields(request)
    await run_in_threadpool(
        _services(request).registration.register,
        fields.get("username"),
        fields.get("password"),
        fields.get("confirmPassword"),
    )
    return Response(status_code=200)


async def login(request: Request) -> Response:
    services = _services(request)
    fields = await read_fields(request)
    identity = await run_in_threadpool(
        services.verifier.verify, fields.get("username"), fields.get("password")
    )
    issued = services.issuer.maybe_issue(identity, reissue=True)

    response = Response(status_code=200)
    set_token_cookies(response, issued, services.settings.cookie_expiry_buffer_seconds)
    logger.info("Login succeeded", extra={"event_data": {"user_id": identity.id}})
    return response


async def logout(request: Request) -> Response:
    response = Response(status_code=200)
    response.delete_cookie(ACCESS_COOKIE, httponly=True)
    response.delete_cookie(REFRESH_COOKIE, httponly=True)
    return response


# ---------------------------------------------------------------------------
# Catalog routes
# ---------------------------------------------------------------------------


async def list_games(request: Request, session: Session | None) -> Response:
    games = await run_in_threadpool(_services(request).catalog.list_all)
    return JSONResponse([_game_json(game) for game in games])


async def create_game(request: Request, session: Session | None) -> Response:
    fields = await read_fields(request)
    game = await run_in_threadpool(_services(request).catalog.insert, fields)
    return JSONResponse(_game_json(game))


async def delete_game(request: Request, session: Session | None) -> Response:
    await run_in_threadpool(_services(request).catalog.delete, request.path_params["id"])
    return Response(status_code=200)


async def update_game(request: Request, session: Session | None) -> Response:
    fields = await read_fields(request)
    changes = await run_in_threadpool(
        _services(request).catalog.update, request.path_params["id"], fields
    )
    if changes is None:
        return Response(status_code=304)
    return JSONResponse(_game_json(changes))


# ---------------------------------------------------------------------------
# Developer routes (GAMEHUB_MODE=dev)
# ---------------------------------------------------------------------------


async def dev_hash_password(request: Request) -> Response:
    password = (await read_fields(request)).get("password")
    if not isinstance(password, str) or not password:
        raise InvalidPasswordError()
    if not fits_bcrypt(password):
        raise InvalidPasswordError(f"the field password must be at most {MAX_PASSWORD_BYTES} bytes long")
    digest = await run_in_threadpool(_services(request).hasher.digest, password)
    return PlainTextResponse(digest)


async def dev_sign_tokens(request: Request) -> Response:
    fields = await read_fields(request)
    user_id, username = fields.get("id"), fields.get("username")
    if not isinstance(user_id, str) or not isinstance(username, str):
        raise ValidationError("the fields id and username are required")
    issued = _services(request).issuer.issue(IdentityPayload(id=user_id, username=username))
    return JSONResponse({"accessToken": issued.access_token, "refreshToken": issued.refresh_token})


async def dev_decode_tokens(request: Request) -> Response:
    codec = _services(request).codec
    fields = await read_fields(request)

    def describe(token):
        decoded = codec.decode(token if isinstance(token, str) else None)
        if decoded is None:
            return None
        return {**decoded.payload.to_claims(), "iat": decoded.issued_at, "exp": decoded.expires_at}

    return JSONResponse(
        {
            "accessTokenPayload": describe(fields.get("accessToken")),
            "refreshTokenPayload": describe(fields.get("refreshToken")),
        }
    )


async def dev_login(request: Request) -> Response:
    services = _services(request)
    fields = await read_fields(request)
    identity = await run_in_threadpool(
        services.verifier.verify, fields.get("username"), fields.get("password")
    )
    issued = services.issuer.issue(identity)

    lifetime = services.settings.dev_cookie_lifetime_seconds
    response = Response(status_code=200)
    response.set_cookie(ACCESS_COOKIE, issued.access_token, max_age=lifetime)
    response.set_cookie(REFRESH_COOKIE, issued.refresh_token, max_age=lifetime)
    return response


async def dev_authorize(request: Request, session: Session) -> Response:
    return Response(status_code=200)


async def health_check(request: Request) -> Response:
    """Liveness probe: is the server process alive and responsive?"""
    return JSONResponse({"status": "healthy"})


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


async def handle_unexpected_error(request: Request, exc: Exception) -> Response:
    logger.error(
        "Request failed with a system error",
        exc_info=exc,
        extra={"event_data": {"method": request.method, "path": request.url.path}},
    )
    return JSONResponse({"message": GENERIC_ERROR_MESSAGE}, status_code=500)


async def handle_gamehub_error(request: Request, exc: GameHubError) -> Response:
    if not exc.is_user_error:
        return await handle_unexpected_error(request, exc)

    logger.warning(
        "Request rejected with a user error",
        extra={
            "event_data": {
                "method": request.method,
                "path": request.url.path,
                "kind": exc.kind.value,
                "status": exc.status_code,
                "reason": exc.message,
            }
        },
    )
    return JSONResponse({"message": exc.message}, status_code=exc.status_code)


async def log_request(request: Request, call_next) -> Response:
    logger.info(
        "%s %s",
        request.method,
        request.url.path,
        extra={"event_data": {"method": request.method, "path": request.url.path}},
    )
    return await call_next(request)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def build_routes(config: Settings) -> list:
    auth_routes = [
        Route("/auth/register", register, methods=["POST"]),
        Route("/auth/login", login, methods=["POST"]),
        Route("/auth/logout", logout, methods=["POST"]),
    ]
    game_routes = [
        Route("/game/all", protected(list_games), methods=["GET"]),
        Route("/game/new", protected(create_game), methods=["POST"]),
        Route("/game/delete/{id}", protected(delete_game), methods=["DELETE"]),
        Route("/game/update/{id}", protected(update_game), methods=["PATCH"]),
    ]
    routes = [Route("/health", health_check, methods=["GET"])]

    if config.dev_mode:
        routes += [
            Route("/auth/dev/hash", dev_hash_password, methods=["POST"]),
            Route("/auth/dev/token/sign", dev_sign_tokens, methods=["POST"]),
            Route("/auth/dev/token/decode", dev_decode_tokens, methods=["POST"]),
            Route("/auth/dev/login", dev_login, methods=["POST"]),
            Route("/auth/dev/authorize", protected(dev_authorize), methods=["GET"]),
            Route("/game/dev/all", unprotected(list_games), methods=["GET"]),
            Route("/game/dev/new", unprotected(create_game), methods=["POST"]),
            Route("/game/dev/delete/{id}", unprotected(delete_game), methods=["DELETE"]),
            Route("/game/dev/update/{id}", unprotected(update_game), methods=["PATCH"]),
        ]

    routes += auth_routes + game_routes

    # Static files last so they never shadow an API route.
    if config.public_dir.is_dir():
        routes.append(Mount("/", app=StaticFiles(directory=config.public_dir, html=True), name="public"))
    return routes


def create_app(
    config: Settings,
    users: CredentialStore | None = None,
    games: GameStore | None = None,
    hasher: PasswordHasher | None = None,
    clock=time.time,
) -> Starlette:
    """
    Build the application.

    When `users` and `games` are given the services are wired immediately
    (tests pass in-memory collections). Otherwise the application connects to
    MongoDB during startup and closes the client on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette):
        if getattr(app.state, "services", None) is not None:
            yield
            return

        client = await run_in_threadpool(connect, config)
        database = client[config.mongodb_database]
        user_store = CredentialStore(database[config.mongodb_users_collection])
        game_store = GameStore(database[config.mongodb_games_collection])
        await run_in_threadpool(user_store.ensure_indexes)
        await run_in_threadpool(game_store.ensure_indexes)
        app.state.services = build_services(config, user_store, game_store, hasher=hasher, clock=clock)
        try:
            yield
        finally:
            client.close()

    app = Starlette(
        routes=build_routes(config),
        middleware=[
            Middleware(BaseHTTPMiddleware, dispatch=log_request),
            Middleware(
                CORSMiddleware,
                allow_origins=config.allowed_origins,
                allow_credentials=True,
                allow_methods=["*"],
                allow_headers=["*"],
            ),
        ],
        exception_handlers={
            GameHubError: handle_gamehub_error,
            Exception: handle_unexpected_error,
        },
        lifespan=lifespan,
    )
    app.state.services = None
    if users is not None and games is not None:
        app.state.services = build_services(config, users, games, hasher=hasher, clock=clock)
    return app


configure_logging(settings.log_level)
app = create_app(settings)


def main() -> None:
    logger.info("Starting server on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
