"""Unit tests for GitHub credential handling."""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from issue_crawler.github.auth import (
    AppCredentialAuth,
    BearerTokenAuth,
    InstallationTokenAuth,
    TokenAuth,
    build_github_auth,
    encode_app_jwt,
    normalize_private_key,
)
from issue_crawler.github.errors import GitHubAPIError, GitHubConfigError

NOW = dt.datetime(2024, 1, 1, 12, tzinfo=dt.UTC)
API_URL = "https://api.github.com"
CREDENTIAL = AppCredentialAuth(
    app_id="1234", private_key="unused", installation_id="5678"
)


def _private_key_pem() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


class _TokenEndpoint:
    """Mock token exchange endpoint counting its calls."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def _token(token: str, expires_at: dt.datetime) -> httpx.Response:
    return httpx.Response(
        201,
        json={"token": token, "expires_at": expires_at.isoformat()},
    )


def _auth(
    endpoint: _TokenEndpoint,
    clock: typ.Callable[[], dt.datetime] = lambda: NOW,
) -> InstallationTokenAuth:
    return InstallationTokenAuth(
        CREDENTIAL,
        api_url=API_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(endpoint)),
        clock=clock,
        jwt_encoder=lambda credential, now: f"jwt-{credential.app_id}",
    )


def test_app_jwt_is_signed_with_the_app_key() -> None:
    """The JWT is RS256, issued by the app, and shorter than ten minutes."""
    pem = _private_key_pem()
    credential = AppCredentialAuth(
        app_id="1234",
        private_key=pem.replace("\n", "\\n"),
        installation_id="5678",
    )
    token = encode_app_jwt(credential, NOW)

    public_key = serialization.load_pem_private_key(
        pem.encode(), password=None
    ).public_key()
    claims = jwt.decode(
        token,
        public_key,
        algorithms=["RS256"],
        options={"verify_exp": False, "verify_iat": False},
    )
    assert claims["iss"] == "1234"
    assert claims["iat"] == int((NOW - dt.timedelta(seconds=60)).timestamp())
    assert claims["exp"] - claims["iat"] <= 600


def test_normalize_private_key_restores_newlines() -> None:
    """Escaped newlines in a single-line key become real ones."""
    assert normalize_private_key("  a\\nb\\nc \n") == "a\nb\nc"


def test_bearer_token_rejects_blank_tokens() -> None:
    """A whitespace-only token is a configuration error."""
    with pytest.raises(GitHubConfigError, match="non-empty"):
        BearerTokenAuth("   ")


@pytest.mark.asyncio
async def test_bearer_token_sets_authorization_header() -> None:
    """Every request carries the configured token."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["authorization"])
        return httpx.Response(200, json=[])

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler), auth=BearerTokenAuth(" ghp_x ")
    ) as client:
        await client.get("https://api.github.com/rate_limit")

    assert seen == ["Bearer ghp_x"]


def test_build_github_auth_dispatches_on_the_variant() -> None:
    """Each credential variant maps onto its httpx auth flow."""
    assert isinstance(
        build_github_auth(TokenAuth(token="ghp_x"), api_url=API_URL),
        BearerTokenAuth,
    )
    assert isinstance(
        build_github_auth(CREDENTIAL, api_url=API_URL),
        InstallationTokenAuth,
    )


@pytest.mark.asyncio
async def test_installation_token_is_exchanged_once_and_cached() -> None:
    """Concurrent callers share one exchange while the token is fresh."""
    endpoint = _TokenEndpoint(_token("inst-1", NOW + dt.timedelta(hours=1)))
    auth = _auth(endpoint)

    tokens = await asyncio.gather(*(auth.installation_token() for _ in range(3)))

    assert tokens == ["inst-1", "inst-1", "inst-1"]
    assert len(endpoint.requests) == 1
    request = endpoint.requests[0]
    assert request.method == "POST"
    assert str(request.url) == (
        "https://api.github.com/app/installations/5678/access_tokens"
    )
    assert request.headers["authorization"] == "Bearer jwt-1234"


@pytest.mark.asyncio
async def test_installation_token_refreshes_near_expiry() -> None:
    """A token inside the refresh margin is exchanged again."""
    endpoint = _TokenEndpoint(
        _token("inst-1", NOW + dt.timedelta(hours=1)),
        _token("inst-2", NOW + dt.timedelta(hours=2)),
    )
    current = NOW
    auth = _auth(endpoint, clock=lambda: current)

    assert await auth.installation_token() == "inst-1"
    current = NOW + dt.timedelta(minutes=56)
    assert await auth.installation_token() == "inst-2"
    assert len(endpoint.requests) == 2


@pytest.mark.asyncio
async def test_installation_token_flow_authorises_requests() -> None:
    """Requests through an async client carry the installation token."""
    endpoint = _TokenEndpoint(_token("inst-1", NOW + dt.timedelta(hours=1)))
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["authorization"])
        return httpx.Response(200, json=[])

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler), auth=_auth(endpoint)
    ) as client:
        await client.get("https://api.github.com/repos/octo/reef/issues")

    assert seen == ["Bearer inst-1"]


@pytest.mark.asyncio
async def test_failed_exchange_raises_api_error() -> None:
    """A rejected JWT surfaces the HTTP status."""
    auth = _auth(_TokenEndpoint(httpx.Response(401, json={"message": "bad"})))

    with pytest.raises(GitHubAPIError) as excinfo:
        await auth.installation_token()

    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_exchange_without_token_is_a_config_error() -> None:
    """An exchange answer lacking a token is unusable."""
    auth = _auth(_TokenEndpoint(httpx.Response(201, json={"expires_at": None})))

    with pytest.raises(GitHubConfigError, match="no token"):
        await auth.installation_token()
