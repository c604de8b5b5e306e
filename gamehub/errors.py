"""
Error taxonomy shared by the auth core, the catalog and the HTTP layer.

Every domain failure is a GameHubError carrying an ErrorKind. The HTTP status
is looked up from the kind, so handlers match on `error.kind` rather than on
which exception instance was raised.

Messages of non-SYSTEM errors are safe to show to clients. SYSTEM errors are
logged server-side and replaced by a generic message at the transport.
"""

import enum


class ErrorKind(enum.Enum):
    VALIDATION = "validation"
    USERNAME_TAKEN = "username_taken"
    AUTHENTICATION = "authentication"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    SYSTEM = "system"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.USERNAME_TAKEN: 400,
    ErrorKind.AUTHENTICATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.SYSTEM: 500,
}


class GameHubError(Exception):
    """
    Base class for every error raised on purpose by this package.

    Attributes:
        message: Human-readable description (client-facing unless SYSTEM)
        kind: Discriminant used to pick the HTTP status
    """

    kind: ErrorKind = ErrorKind.SYSTEM

    def __init__(self, message: str, kind: ErrorKind | None = None):
        self.message = message
        if kind is not None:
            self.kind = kind
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    @property
    def is_user_error(self) -> bool:
        return self.kind is not ErrorKind.SYSTEM


# --- Registration / validation ---


class ValidationError(GameHubError):
    kind = ErrorKind.VALIDATION


class InvalidUsernameError(ValidationError):
    def __init__(self):
        super().__init__("the field username is required and must not contain whitespace")


class InvalidPasswordError(ValidationError):
    def __init__(self, message: str = "the field password is required and must not contain whitespace"):
        super().__init__(message)


class PasswordMismatchError(ValidationError):
    def __init__(self):
        super().__init__("confirmPassword does not match password")


class MissingFieldError(ValidationError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"the field {field} is required but got nothing")


class InvalidCategoryError(ValidationError):
    def __init__(self, categories):
        super().__init__(
            "the category provided is not available please try these categories: "
            + ",".join(categories)
        )


class UsernameTakenError(GameHubError):
    kind = ErrorKind.USERNAME_TAKEN

    def __init__(self):
        super().__init__("the username has been used by someone else")


# --- Login / session ---


class AuthenticationError(GameHubError):
    """Unknown username and wrong password share this error and its message."""

    kind = ErrorKind.AUTHENTICATION

    def __init__(self):
        super().__init__("username or password is incorrect")


class UnauthorizedError(GameHubError):
    kind = ErrorKind.UNAUTHORIZED

    def __init__(self):
        super().__init__("you haven't logged in yet")


# --- Catalog ---


class GameNotFoundError(GameHubError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self):
        super().__init__("no game match the query")


# --- System ---


class SigningError(GameHubError):
    """Token signing failed (misconfigured key or algorithm)."""

    kind = ErrorKind.SYSTEM


class IdAllocationError(GameHubError):
    """Sequential id allocation kept colliding with concurrent inserts."""

    kind = ErrorKind.SYSTEM
