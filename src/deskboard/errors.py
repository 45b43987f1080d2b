from __future__ import annotations

class DashboardError(Exception):
    """Base class for failures a widget reports instead of data."""

class ConfigError(DashboardError):
    """A credential or setting the fetch needs is missing."""

class UpstreamHttpError(DashboardError):
    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body

class ParseError(DashboardError):
    """The provider answered with a payload we could not make sense of."""

class NetworkError(DashboardError):
    pass

class FetchCancelled(DashboardError):
    """The dashboard stopped while a fetch was still running in its worker thread."""
