"""Environment configuration for a crawl run.

Usage
-----
Load the configuration once at startup:

>>> config = CrawlerConfig.from_env(
...     {
...         "GITHUB_OAUTH_TOKEN": "ghp_example",
...         "ES_HOST": "http://localhost:9200",
...         "ES_AUTH": "elastic:changeme",
...         "REPOSITORIES": "elastic/kibana",
...     }
... )
>>> [target.index_name for target in config.targets]
['issues-elastic-kibana']

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import datetime as dt
import os

from issue_crawler.errors import CrawlerConfigError
from issue_crawler.github.auth import AppCredentialAuth, Auth, TokenAuth
from issue_crawler.github.models import DEFAULT_RELOCATION_STATUSES
from issue_crawler.index.client import ElasticsearchConfig
from issue_crawler.reconcile.service import ReconcileConfig
from issue_crawler.repositories import RepositoryTarget, parse_targets, unique_targets
from issue_crawler.watermarks.models import WATERMARK_MODES, WatermarkMode

_DEFAULT_API_URL = "https://api.github.com"
_HTTP_STATUS_MIN = 100
_HTTP_STATUS_MAX = 599


def _get(env: cabc.Mapping[str, str], name: str) -> str:
    return env.get(name, "").strip()


def _require(env: cabc.Mapping[str, str], name: str) -> str:
    value = _get(env, name)
    if not value:
        raise CrawlerConfigError.missing(name)
    return value


def _positive_int(env: cabc.Mapping[str, str], name: str, default: int) -> int:
    """Read a positive integer variable, falling back to a default."""
    raw = _get(env, name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise CrawlerConfigError.invalid(name, raw, "an integer") from exc
    if value < 1:
        raise CrawlerConfigError.invalid(name, raw, "a positive integer")
    return value


def _positive_float(env: cabc.Mapping[str, str], name: str, default: float) -> float:
    raw = _get(env, name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise CrawlerConfigError.invalid(name, raw, "a number") from exc
    if value <= 0:
        raise CrawlerConfigError.invalid(name, raw, "a positive number")
    return value


def parse_status_codes(name: str, raw: str) -> frozenset[int]:
    """Parse a comma-separated list of HTTP status codes.

    >>> sorted(parse_status_codes("CRAWLER_RELOCATION_STATUSES", "404, 301"))
    [301, 404]

    """
    codes: set[int] = set()
    for item in raw.split(","):
        if not item.strip():
            continue
        try:
            code = int(item)
        except ValueError as exc:
            raise CrawlerConfigError.invalid(name, raw, "HTTP status codes") from exc
        if not _HTTP_STATUS_MIN <= code <= _HTTP_STATUS_MAX:
            raise CrawlerConfigError.invalid(name, raw, "HTTP status codes")
        codes.add(code)
    if not codes:
        raise CrawlerConfigError.invalid(name, raw, "at least one status code")
    return frozenset(codes)


def _targets(
    env: cabc.Mapping[str, str], name: str, *, private: bool
) -> tuple[RepositoryTarget, ...]:
    raw = _get(env, name)
    try:
        return parse_targets(raw, private=private)
    except ValueError as exc:
        raise CrawlerConfigError.invalid(name, raw, "owner/name slugs") from exc


def resolve_auth(env: cabc.Mapping[str, str]) -> Auth:
    """Resolve the GitHub credential variant.

    App credentials win when all three app variables are set; otherwise a
    token is required.
    """
    app_id = _get(env, "GITHUB_OAUTH_APP_ID")
    private_key = _get(env, "GITHUB_OAUTH_PRIVATE_KEY")
    installation_id = _get(env, "GITHUB_OAUTH_INSTALLATION_ID")
    if app_id and private_key and installation_id:
        return AppCredentialAuth(
            app_id=app_id,
            private_key=private_key,
            installation_id=installation_id,
        )
    token = _get(env, "GITHUB_OAUTH_TOKEN")
    if token:
        return TokenAuth(token=token)
    raise CrawlerConfigError.no_credentials()


def resolve_elasticsearch(env: cabc.Mapping[str, str]) -> ElasticsearchConfig:
    """Read the Elasticsearch URL and basic-auth credentials."""
    url = _require(env, "ES_HOST")
    combined = _get(env, "ES_AUTH")
    if combined:
        username, sep, password = combined.partition(":")
        if not sep or not username:
            raise CrawlerConfigError.invalid("ES_AUTH", "***", "user:password")
        return ElasticsearchConfig(url=url, username=username, password=password)
    return ElasticsearchConfig(
        url=url,
        username=_require(env, "ES_USER"),
        password=_require(env, "ES_PASSWORD"),
    )


@dc.dataclass(frozen=True, slots=True)
class CrawlerConfig:
    """Everything a crawl run needs, resolved once at startup.

    Attributes
    ----------
    auth
        GitHub credential variant.
    elasticsearch
        Sink URL and credentials.
    targets
        Public then private repositories, without duplicates.
    watermark_mode
        ``timestamp`` (``since`` filter) or ``etag`` (conditional pages).
    watermark_database_url
        SQLAlchemy URL for SQL watermarks; ``None`` keeps them in the
        ``crawler-cache`` index.

    """

    auth: Auth
    elasticsearch: ElasticsearchConfig
    targets: tuple[RepositoryTarget, ...]
    github_api_url: str = _DEFAULT_API_URL
    watermark_mode: WatermarkMode = "timestamp"
    watermark_database_url: str | None = None
    max_concurrency: int = 4
    requests_per_second: float = 10.0
    reconcile: ReconcileConfig = dc.field(default_factory=ReconcileConfig)

    @classmethod
    def from_env(cls, env: cabc.Mapping[str, str] | None = None) -> CrawlerConfig:
        """Create configuration from environment variables.

        Raises
        ------
        CrawlerConfigError
            If a required variable is missing or any value is invalid.

        """
        env = os.environ if env is None else env

        targets = unique_targets(
            (
                *_targets(env, "REPOSITORIES", private=False),
                *_targets(env, "PRIVATE_REPOS", private=True),
            )
        )
        if not targets:
            raise CrawlerConfigError.no_repositories()

        mode = _get(env, "CRAWLER_WATERMARK_MODE").lower() or "timestamp"
        if mode not in WATERMARK_MODES:
            raise CrawlerConfigError.invalid(
                "CRAWLER_WATERMARK_MODE", mode, " or ".join(WATERMARK_MODES)
            )

        raw_statuses = _get(env, "CRAWLER_RELOCATION_STATUSES")
        reconcile = ReconcileConfig(
            stale_after=dt.timedelta(days=_positive_int(env, "CRAWLER_STALE_DAYS", 60)),
            max_batch=_positive_int(env, "CRAWLER_RECONCILE_BATCH", 2000),
            relocation_statuses=(
                parse_status_codes("CRAWLER_RELOCATION_STATUSES", raw_statuses)
                if raw_statuses
                else DEFAULT_RELOCATION_STATUSES
            ),
        )

        return cls(
            auth=resolve_auth(env),
            elasticsearch=resolve_elasticsearch(env),
            targets=targets,
            github_api_url=(_get(env, "GITHUB_API_URL") or _DEFAULT_API_URL).rstrip(
                "/"
            ),
            watermark_mode=mode,  # type: ignore[arg-type]
            watermark_database_url=_get(env, "CRAWLER_WATERMARK_DATABASE_URL") or None,
            max_concurrency=_positive_int(env, "CRAWLER_MAX_CONCURRENCY", 4),
            requests_per_second=_positive_float(
                env, "CRAWLER_REQUESTS_PER_SECOND", 10.0
            ),
            reconcile=reconcile,
        )
