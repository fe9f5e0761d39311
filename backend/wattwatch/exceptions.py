"""Domain exceptions raised by services and mapped to HTTP responses in main."""

from __future__ import annotations


class WattWatchError(Exception):
    """Base class for errors that carry an HTTP status."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(WattWatchError):
    status_code = 404


class ForbiddenError(WattWatchError):
    status_code = 403


class AuthError(WattWatchError):
    status_code = 401


class ValidationFailed(WattWatchError):
    status_code = 400


class ConflictError(WattWatchError):
    status_code = 409
