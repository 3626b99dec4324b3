"""GitHub REST client errors."""

from __future__ import annotations


class GitHubAPIError(RuntimeError):
    """Raised when GitHub answers with an error status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, url: str) -> GitHubAPIError:
        """Return an error for an unexpected HTTP status."""
        return cls(f"GitHub HTTP {status_code} for {url}", status_code=status_code)


class GitHubRateLimitError(GitHubAPIError):
    """Raised when GitHub rejects a request because a quota is exhausted.

    ``retry_after`` holds the server's requested wait in seconds when the
    response declared one through ``Retry-After`` or ``x-ratelimit-reset``.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        """Initialise with the status and the server-declared wait."""
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after

    @classmethod
    def quota_exhausted(
        cls, status_code: int, url: str, retry_after: float | None
    ) -> GitHubRateLimitError:
        """Return an error for a primary or secondary rate-limit rejection."""
        return cls(
            f"GitHub rate limit exceeded (HTTP {status_code}) for {url}",
            status_code=status_code,
            retry_after=retry_after,
        )


class GitHubRetryExhaustedError(RuntimeError):
    """Raised when a transient failure outlives the retry ceiling."""

    def __init__(self, url: str, attempts: int) -> None:
        """Record the request URL and the number of attempts made."""
        self.url = url
        self.attempts = attempts
        super().__init__(f"GitHub request {url} failed after {attempts} attempts")


class GitHubResponseShapeError(RuntimeError):
    """Raised when a GitHub response body does not have the expected shape."""

    @classmethod
    def unexpected(cls, url: str, expected: str) -> GitHubResponseShapeError:
        """Return an error for a body that is not the expected JSON type."""
        return cls(f"GitHub response for {url} is not {expected}")

    @classmethod
    def missing(cls, field: str) -> GitHubResponseShapeError:
        """Return an error for a missing response field."""
        return cls(f"GitHub response missing expected field: {field}")

    @classmethod
    def repeated_cursor(cls, url: str) -> GitHubResponseShapeError:
        """Return an error for a next-page link already visited in this walk."""
        return cls(f"GitHub pagination returned an already visited page: {url}")


class GitHubConfigError(RuntimeError):
    """Raised when GitHub credentials are unusable."""

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when a provided token is blank."""
        return cls("GitHub token must be non-empty")

    @classmethod
    def invalid_installation_token(cls) -> GitHubConfigError:
        """Return an error when the installation token exchange is malformed."""
        return cls("GitHub App installation token response had no token")
