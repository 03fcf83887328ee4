# src/models/errors.py

"""Exception types raised across the monitoring pipeline."""


class FetchError(Exception):
    """A page could not be retrieved."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{message} ({url})")
        self.url = url


class NetworkError(FetchError):
    """Connection failure or a non-success HTTP status."""

    def __init__(
        self, url: str, message: str, status: int | None = None,
    ) -> None:
        super().__init__(url, message)
        self.status = status


class FetchTimeoutError(FetchError):
    """The fetch exceeded its timeout and the transfer was aborted."""


class StoreError(Exception):
    """Persisting or reading monitor state failed."""


class AnalyzerUnavailable(Exception):
    """The qualitative analyzer could not produce a verdict."""
