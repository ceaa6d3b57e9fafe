"""
Domain exceptions for the price service.

Services raise these instead of fastapi.HTTPException to avoid coupling
the ingestion layer to the web framework. A global exception handler in
main.py translates them into HTTP responses.
"""


class AppError(Exception):
    """Base application error with an HTTP-equivalent status code."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)


class PriceParseError(AppError):
    """A single upstream record could not be decoded (422)."""

    def __init__(self, message: str, raw=None):
        self.raw = raw
        super().__init__(message, status_code=422)


class SourceUnavailableError(AppError):
    """Upstream price source unreachable, erroring or not launchable (503)."""

    def __init__(self, message: str = "Price source unavailable", source: str = None):
        self.source = source
        super().__init__(message, status_code=503)
