"""Exception types shared by the fetcher, pipeline and sinks."""

from __future__ import annotations


class CrawlError(Exception):
    """Base class for every error raised by drugcrawl."""


class FetchError(CrawlError):
    """A document could not be fetched (transport failure or HTTP error status)."""

    def __init__(self, url: str, cause: BaseException) -> None:
        super().__init__(f"HTTP request {url} error: {cause}")
        self.url = url
        self.cause = cause


class ParseError(CrawlError):
    """A fetched body could not be parsed as HTML."""

    def __init__(self, url: str, cause: BaseException) -> None:
        super().__init__(f"Parsing {url} failed: {cause}")
        self.url = url
        self.cause = cause


class SetupError(CrawlError):
    """A sink or connection could not be prepared before the run started."""


class SinkError(CrawlError):
    """A sink failed mid-stream.

    ``committed`` is the number of records that were durably written before
    the failure.
    """

    def __init__(self, message: str, committed: int = 0) -> None:
        super().__init__(message)
        self.committed = committed


class StreamClosed(CrawlError):
    """Raised when putting into, or closing again, a closed stream."""


class StreamCancelled(StreamClosed):
    """Raised on a stream its consumer has abandoned."""
