"""GitHub REST access for the issue crawler."""

from __future__ import annotations

from .auth import (
    AppCredentialAuth,
    Auth,
    BearerTokenAuth,
    InstallationTokenAuth,
    TokenAuth,
    build_github_auth,
)
from .client import GitHubRestClient, GitHubRestConfig, IssueSource
from .enrichment import TimelineEnricher, transfer_from_event
from .errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubRateLimitError,
    GitHubResponseShapeError,
    GitHubRetryExhaustedError,
)
from .models import (
    EnrichedIssue,
    IssueListing,
    IssuePage,
    ProbeOutcome,
    ProbeResult,
    RateLimitStatus,
    RawIssue,
    TransferEvent,
)
from .pagination import IssuePaginator
from .retry import GiveUp, RetryAfter, RetryDecision, RetryPolicy, is_transient
from .throttle import RequestThrottle

__all__ = [
    "AppCredentialAuth",
    "Auth",
    "BearerTokenAuth",
    "EnrichedIssue",
    "GitHubAPIError",
    "GitHubConfigError",
    "GitHubRateLimitError",
    "GitHubResponseShapeError",
    "GitHubRestClient",
    "GitHubRestConfig",
    "GitHubRetryExhaustedError",
    "GiveUp",
    "InstallationTokenAuth",
    "IssueListing",
    "IssuePage",
    "IssuePaginator",
    "IssueSource",
    "ProbeOutcome",
    "ProbeResult",
    "RateLimitStatus",
    "RawIssue",
    "RequestThrottle",
    "RetryAfter",
    "RetryDecision",
    "RetryPolicy",
    "TimelineEnricher",
    "TokenAuth",
    "TransferEvent",
    "build_github_auth",
    "is_transient",
    "transfer_from_event",
]
