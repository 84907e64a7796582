"""Errors raised by the filevault core.

Every error carries a short ``token`` that the HTTP layer appends to its
redirect target (``?error=<token>``) and a ``status_code`` used when the
error escapes a route unhandled.
"""


class FileVaultError(Exception):
    token = "error"
    status_code = 500

    def __init__(self, message: str | None = None, token: str | None = None) -> None:
        if token is not None:
            self.token = token
        super().__init__(message or self.token)


class ValidationError(FileVaultError):
    """Raised for malformed input: blank folder names, missing uploads."""

    token = "invalid-input"
    status_code = 400


class NotFoundError(FileVaultError):
    """Raised when a resource is absent or owned by someone else."""

    token = "not-found"
    status_code = 404


class DuplicateError(FileVaultError):
    token = "already-exists"
    status_code = 409


class AuthError(FileVaultError):
    """Bad credentials.

    The subclasses tell the two failure causes apart for logging, but share
    one token so callers cannot tell which emails are registered.
    """

    token = "invalid-credentials"
    status_code = 401


class UserNotFound(AuthError):
    pass


class WrongPassword(AuthError):
    pass


class CapacityError(FileVaultError):
    token = "file-too-large"
    status_code = 413


class PolicyError(FileVaultError):
    token = "file-type-not-allowed"
    status_code = 415


class StorageIOError(FileVaultError):
    """Raised when the metadata store or blob area cannot be read or written."""

    token = "storage-error"
    status_code = 503


class LoginRequired(FileVaultError):
    token = "login-required"
    status_code = 401
