"""Error taxonomy shared by the engine and the HTTP layer."""

from __future__ import annotations


class EngineError(Exception):
    """Base class; ``status_code`` is what the HTTP layer answers with."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EngineError, ValueError):
    """Missing or malformed input."""

    status_code = 400


class UnauthorizedError(EngineError):
    """No authenticated user on the request."""

    status_code = 401


class NotFoundError(EngineError, LookupError):
    """No matching entity, or an empty question pool."""

    status_code = 404


class NotCompletedError(EngineError):
    """Claim attempted on a challenge that is not completed yet."""

    status_code = 409


class AlreadyClaimedError(EngineError):
    """Claim attempted on a challenge whose reward was already credited."""

    status_code = 409


__all__ = [
    "AlreadyClaimedError",
    "EngineError",
    "NotCompletedError",
    "NotFoundError",
    "UnauthorizedError",
    "ValidationError",
]
