"""
Error taxonomy shared by services and routers.

Every service-level failure is an ``ExchangeError`` subclass carrying the
HTTP status it maps to. The exception handler in ``app.main`` renders them
as ``{"error": message}`` so user-facing messages (e.g. a channel's
configured status text) reach the client unchanged.
"""


class ExchangeError(Exception):
    """Base class for expected, user-reportable failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ExchangeError):
    """Malformed or missing input."""
    status_code = 400

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []


class Unauthorized(ExchangeError):
    status_code = 401


class Forbidden(ExchangeError):
    status_code = 403


class NotFound(ExchangeError):
    status_code = 404


class Conflict(ExchangeError):
    status_code = 409


class QuoteError(ExchangeError):
    """Pricing cannot be computed for the request."""
    status_code = 400


class Unavailable(QuoteError):
    """Channel is not offerable on the requested side."""


class InvalidRate(QuoteError):
    """Stored exchange rate is non-positive or non-finite."""


class InvalidStatus(ExchangeError):
    status_code = 400


class Internal(ExchangeError):
    status_code = 500
