"""Provider client and sync exceptions.

A provider 404 is not an exception: the client turns it into an empty
page, a missing run or no commits. Everything else here is fatal for the
sync call in flight.
"""


class ProviderError(Exception):
    """Base exception for CI provider errors."""

    pass


class ProviderAuthenticationError(ProviderError):
    """Raised when no credential is available for a pipeline."""

    pass


class UnsupportedProviderError(ProviderError):
    """Raised when a pipeline type has no provider adapter."""

    pass


class ProviderUnavailableError(ProviderError):
    """Raised for any non-404 error status or a transport failure.

    Aborts the whole sync (or verification) in progress.
    """

    def __init__(self, message: str, *, status_code: int | None, endpoint: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class AttributionGapError(Exception):
    """Raised when a commit attribution window is invalid.

    Either the previous build's head-commit timestamp lies after the current
    build's, or the provider returned commits outside the requested window.
    Attributing anyway would drop or duplicate commits.
    """

    def __init__(self, message: str, *, since: int | None, until: int) -> None:
        super().__init__(message)
        self.since = since
        self.until = until
