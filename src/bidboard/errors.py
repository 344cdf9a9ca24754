"""Typed errors raised by Bidboard services.

Each error carries the HTTP status and the machine-readable code the API
reports, so the web layer maps all of them with a single handler.
"""


class MarketError(Exception):
    """Base class for expected marketplace failures."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class NotFoundError(MarketError):
    """A user, collection or bid id does not resolve."""

    status_code = 404
    code = "NOT_FOUND"


class AuthorizationError(MarketError):
    """The caller is not allowed to touch the resource."""

    status_code = 403
    code = "FORBIDDEN"


class ValidationError(MarketError):
    """The request breaks a business rule or carries invalid values."""

    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidStateError(ValidationError):
    """The bid is not in a state that allows the requested transition."""

    code = "INVALID_STATE"


class ConflictError(MarketError):
    """A uniqueness rule or a concurrent write got in the way."""

    status_code = 409
    code = "CONFLICT"


class UnauthenticatedError(MarketError):
    """Missing, unknown or expired credential."""

    status_code = 401
    code = "UNAUTHENTICATED"
