"""HALO — Error taxonomy.

Every failure the pipeline contains (one event, one cursor, one tenant)
is raised as one of these, so callers can decide what to count, log or
surface without string matching.
"""


class HaloError(Exception):
    """Base class for pipeline errors."""


class ValidationError(HaloError):
    """A source adapter rejected a payload."""


class UnknownSourceError(ValidationError):
    """No adapter or poller is registered for the source."""

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"Unsupported source: {source}")


class ProcessingError(HaloError):
    """A raw event could not be turned into a canonical record."""


class PollerError(HaloError):
    """Upstream fetch failed while polling a cursor."""


class MetaAPIError(PollerError):
    """Raised when Meta API returns an error."""

    def __init__(self, message: str, status_code: int = 0, error_code: int = 0):
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)
