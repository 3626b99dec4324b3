"""Process-level errors raised before any repository task starts."""

from __future__ import annotations


class CrawlerConfigError(ValueError):
    """Raised when the crawler's environment configuration is unusable."""

    @classmethod
    def missing(cls, name: str) -> CrawlerConfigError:
        """Return an error for a required variable that is unset or blank."""
        return cls(f"{name} must be set")

    @classmethod
    def invalid(cls, name: str, value: str, expected: str) -> CrawlerConfigError:
        """Return an error for a variable whose value cannot be used."""
        return cls(f"{name}={value!r} is invalid; expected {expected}")

    @classmethod
    def no_credentials(cls) -> CrawlerConfigError:
        """Return an error when no GitHub credential variant is configured."""
        return cls(
            "set GITHUB_OAUTH_TOKEN, or GITHUB_OAUTH_APP_ID, "
            "GITHUB_OAUTH_PRIVATE_KEY and GITHUB_OAUTH_INSTALLATION_ID"
        )

    @classmethod
    def no_repositories(cls) -> CrawlerConfigError:
        """Return an error when neither repository list names a repository."""
        return cls("REPOSITORIES or PRIVATE_REPOS must name at least one repository")
