"""Error taxonomy shared by every layer of the weather aggregator.

Each error carries the HTTP status and the short error code that the API layer
renders as ``{"error": code, "message": message}``.
"""


class WeatherAppError(Exception):
    """Base class for errors surfaced to HTTP callers."""

    status_code = 500
    code = 'internal_error'

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(WeatherAppError):
    """Caller input is malformed or missing."""

    status_code = 400
    code = 'invalid_request'


class LocationNotFoundError(WeatherAppError):
    """Geocoding returned zero results for a place name."""

    status_code = 404
    code = 'location_not_found'


class NotFoundError(WeatherAppError):
    """A requested alert or subscription does not exist."""

    status_code = 404
    code = 'not_found'


class ServiceNotConfiguredError(WeatherAppError):
    """An optional upstream provider has no credentials configured."""

    status_code = 503
    code = 'service_not_configured'


class UpstreamError(WeatherAppError):
    """Base class for failures talking to a third-party API."""

    status_code = 502
    code = 'upstream_error'
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, status_code=status_code)
        self.upstream_status = upstream_status


class UpstreamTransportError(UpstreamError):
    """Connection failure or timeout; eligible for retry."""

    status_code = 503
    code = 'upstream_unavailable'
    retryable = True


class UpstreamApplicationError(UpstreamError):
    """Upstream answered with a non-2xx status and (usually) an error body."""

    code = 'upstream_error'

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int,
        upstream_code: int | str | None = None,
        retryable: bool = False,
    ):
        # 4xx answers are the caller's problem and keep their status;
        # upstream 5xx becomes a bad gateway.
        status = upstream_status if 400 <= upstream_status < 500 else 502
        super().__init__(message, upstream_status=upstream_status, status_code=status)
        self.upstream_code = upstream_code
        self.retryable = retryable
