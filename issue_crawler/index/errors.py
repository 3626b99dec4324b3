"""Elasticsearch client errors."""

from __future__ import annotations


class ElasticsearchError(RuntimeError):
    """Raised when an Elasticsearch request fails as a whole."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(
        cls, method: str, path: str, status_code: int, reason: str | None = None
    ) -> ElasticsearchError:
        """Return an error for a non-success HTTP status."""
        detail = f": {reason}" if reason else ""
        return cls(
            f"Elasticsearch {method} {path} returned HTTP {status_code}{detail}",
            status_code=status_code,
        )

    @classmethod
    def transport(cls, method: str, path: str) -> ElasticsearchError:
        """Return an error for a request that never got a response."""
        return cls(f"Elasticsearch {method} {path} failed before a response")


class ElasticsearchResponseError(ElasticsearchError):
    """Raised when an Elasticsearch response body cannot be decoded."""

    @classmethod
    def undecodable(cls, method: str, path: str) -> ElasticsearchResponseError:
        """Return an error for a body that does not match the expected shape."""
        return cls(f"Elasticsearch {method} {path} returned an unexpected body")
