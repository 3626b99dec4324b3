"""GitHub authentication variants.

Credentials are resolved once at startup into one of two variants:

- :class:`TokenAuth` for a personal access or OAuth token;
- :class:`AppCredentialAuth` for a GitHub App installation, exchanged for a
  short-lived installation token on first use and again shortly before it
  expires.

:func:`build_github_auth` turns the variant into an :class:`httpx.Auth`; no
other module branches on the credential kind.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses
import datetime as dt
import typing as typ

import httpx
import jwt

from issue_crawler.common.time import parse_github_datetime, utcnow

from .errors import GitHubAPIError, GitHubConfigError

_HTTP_ERROR_STATUS_THRESHOLD = 400
# GitHub rejects app JWTs that live longer than ten minutes.
_JWT_LIFETIME = dt.timedelta(minutes=9)
_JWT_BACKDATE = dt.timedelta(seconds=60)
_TOKEN_REFRESH_MARGIN = dt.timedelta(minutes=5)


@dataclasses.dataclass(frozen=True, slots=True)
class TokenAuth:
    """A static bearer token."""

    token: str = dataclasses.field(repr=False)


@dataclasses.dataclass(frozen=True, slots=True)
class AppCredentialAuth:
    """GitHub App credentials for one installation."""

    app_id: str
    private_key: str = dataclasses.field(repr=False)
    installation_id: str


type Auth = TokenAuth | AppCredentialAuth

type JWTEncoder = cabc.Callable[[AppCredentialAuth, dt.datetime], str]


def normalize_private_key(private_key: str) -> str:
    r"""Restore newlines in a PEM key passed through a single-line variable.

    >>> normalize_private_key("-----BEGIN KEY-----\\nabc\\n-----END KEY-----")
    '-----BEGIN KEY-----\nabc\n-----END KEY-----'

    """
    return private_key.strip().replace("\\n", "\n")


def encode_app_jwt(credential: AppCredentialAuth, now: dt.datetime) -> str:
    """Sign the RS256 JWT GitHub expects from an app before token exchange."""
    issued_at = now - _JWT_BACKDATE
    payload = {
        "iat": int(issued_at.timestamp()),
        "exp": int((now + _JWT_LIFETIME).timestamp()),
        "iss": credential.app_id,
    }
    return jwt.encode(
        payload, normalize_private_key(credential.private_key), algorithm="RS256"
    )


class BearerTokenAuth(httpx.Auth):
    """Attach a static token to every request."""

    def __init__(self, token: str) -> None:
        """Store the token, rejecting blank values."""
        if not token.strip():
            raise GitHubConfigError.empty_token()
        self._token = token.strip()

    def auth_flow(
        self, request: httpx.Request
    ) -> typ.Generator[httpx.Request, httpx.Response, None]:
        """Add the ``Authorization`` header."""
        request.headers["Authorization"] = f"Bearer {self._token}"
        yield request


@dataclasses.dataclass(slots=True)
class _InstallationToken:
    token: str
    expires_at: dt.datetime


class InstallationTokenAuth(httpx.Auth):
    """Authenticate as a GitHub App installation.

    The installation token is fetched lazily under an :class:`asyncio.Lock`,
    so concurrent repository tasks sharing one client trigger a single
    exchange. Only the async flow is supported.
    """

    def __init__(
        self,
        credential: AppCredentialAuth,
        *,
        api_url: str,
        http_client: httpx.AsyncClient | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
        jwt_encoder: JWTEncoder = encode_app_jwt,
    ) -> None:
        """Bind the credential to the API base and an exchange client."""
        self._credential = credential
        self._token_url = (
            f"{api_url.rstrip('/')}/app/installations/"
            f"{credential.installation_id}/access_tokens"
        )
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=30.0)
        self._clock = clock
        self._jwt_encoder = jwt_encoder
        self._lock = asyncio.Lock()
        self._cached: _InstallationToken | None = None

    async def aclose(self) -> None:
        """Close the exchange client when this object created it."""
        if self._owns_client:
            await self._http.aclose()

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> typ.Generator[httpx.Request, httpx.Response, None]:
        """Reject synchronous use; installation tokens are fetched async."""
        msg = "InstallationTokenAuth only supports httpx.AsyncClient"
        raise RuntimeError(msg)

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> typ.AsyncGenerator[httpx.Request, httpx.Response]:
        """Add a current installation token to the request."""
        token = await self.installation_token()
        request.headers["Authorization"] = f"Bearer {token}"
        yield request

    async def installation_token(self) -> str:
        """Return a token valid for at least the refresh margin."""
        async with self._lock:
            now = self._clock()
            cached = self._cached
            if cached is not None and cached.expires_at - now > _TOKEN_REFRESH_MARGIN:
                return cached.token
            self._cached = await self._exchange(now)
            return self._cached.token

    async def _exchange(self, now: dt.datetime) -> _InstallationToken:
        app_jwt = self._jwt_encoder(self._credential, now)
        response = await self._http.post(
            self._token_url,
            headers={
                "Authorization": f"Bearer {app_jwt}",
                "Accept": "application/vnd.github+json",
            },
        )
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.http_error(response.status_code, self._token_url)
        payload = response.json()
        token = payload.get("token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            raise GitHubConfigError.invalid_installation_token()
        expires_raw = payload.get("expires_at")
        expires_at = (
            parse_github_datetime(expires_raw)
            if isinstance(expires_raw, str)
            else now + dt.timedelta(hours=1)
        )
        return _InstallationToken(token=token, expires_at=expires_at)


def build_github_auth(
    auth: Auth,
    *,
    api_url: str,
    http_client: httpx.AsyncClient | None = None,
) -> httpx.Auth:
    """Return the :class:`httpx.Auth` implementing ``auth``."""
    match auth:
        case TokenAuth(token=token):
            return BearerTokenAuth(token)
        case AppCredentialAuth():
            return InstallationTokenAuth(auth, api_url=api_url, http_client=http_client)
