"""Elasticsearch REST client used for documents and the crawler cache."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ
from urllib.parse import quote

import httpx
import msgspec

from .errors import ElasticsearchError, ElasticsearchResponseError
from .models import BulkResponse, GetResponse, IndexOperation, SearchHit, SearchResponse

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_NOT_FOUND = 404
_REASON_EXCERPT = 200


class SearchIndex(typ.Protocol):
    """Interface the writer, watermark store and reconciler need from the sink."""

    async def bulk(self, operations: cabc.Sequence[IndexOperation]) -> BulkResponse:
        """Submit ``index`` actions in one bulk request."""
        ...

    async def search(
        self,
        index: str,
        *,
        query: cabc.Mapping[str, typ.Any],
        size: int,
        source: cabc.Sequence[str] | None = None,
        sort: cabc.Sequence[cabc.Mapping[str, typ.Any]] | None = None,
    ) -> list[SearchHit]:
        """Return at most ``size`` hits matching ``query``."""
        ...

    async def update(
        self, index: str, doc_id: str, doc: cabc.Mapping[str, typ.Any]
    ) -> None:
        """Merge ``doc`` into an existing document."""
        ...

    async def index_document(
        self, index: str, doc_id: str, source: cabc.Mapping[str, typ.Any]
    ) -> None:
        """Create or replace one document."""
        ...

    async def get_document(
        self, index: str, doc_id: str
    ) -> dict[str, typ.Any] | None:
        """Return a document's source, or ``None`` when it does not exist."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class ElasticsearchConfig:
    """Connection settings for the Elasticsearch REST API."""

    url: str
    username: str | None = None
    password: str | None = dataclasses.field(default=None, repr=False)
    timeout_s: float = 30.0


def basic_auth(config: ElasticsearchConfig) -> httpx.BasicAuth | None:
    """Return HTTP basic credentials when a username is configured."""
    if not config.username:
        return None
    return httpx.BasicAuth(config.username, config.password or "")


def _doc_path(index: str, action: str, doc_id: str) -> str:
    return f"/{index}/{action}/{quote(doc_id, safe='')}"


def encode_bulk_body(operations: cabc.Sequence[IndexOperation]) -> bytes:
    """Encode ``index`` actions as the NDJSON body ``/_bulk`` expects.

    >>> encode_bulk_body([IndexOperation("issues-a-b", "1", {"n": 1})])
    b'{"index":{"_index":"issues-a-b","_id":"1"}}\\n{"n":1}\\n'

    """
    lines: list[bytes] = []
    for operation in operations:
        lines.append(
            msgspec.json.encode(
                {"index": {"_index": operation.index, "_id": operation.doc_id}}
            )
        )
        lines.append(msgspec.json.encode(operation.source))
    return b"\n".join(lines) + b"\n"


class ElasticsearchClient:
    """httpx implementation of :class:`SearchIndex`.

    Whole-request failures (transport errors and non-2xx statuses) raise
    :class:`ElasticsearchError`. Per-item bulk failures are reported in the
    returned :class:`BulkResponse` and are left to the caller.
    """

    def __init__(
        self,
        config: ElasticsearchConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Create a client; an owned ``httpx.AsyncClient`` is built if omitted."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=config.url.rstrip("/"),
            timeout=config.timeout_s,
            auth=basic_auth(config),
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def bulk(self, operations: cabc.Sequence[IndexOperation]) -> BulkResponse:
        """Submit ``index`` actions in one ``POST /_bulk`` request."""
        if not operations:
            return BulkResponse()
        response = await self._request(
            "POST",
            "/_bulk",
            content=encode_bulk_body(operations),
            headers={"Content-Type": "application/x-ndjson"},
        )
        return self._decode("POST", "/_bulk", response, BulkResponse)

    async def search(
        self,
        index: str,
        *,
        query: cabc.Mapping[str, typ.Any],
        size: int,
        source: cabc.Sequence[str] | None = None,
        sort: cabc.Sequence[cabc.Mapping[str, typ.Any]] | None = None,
    ) -> list[SearchHit]:
        """Run a search; a missing index yields no hits."""
        path = f"/{index}/_search"
        body: dict[str, typ.Any] = {"query": dict(query), "size": size}
        if source is not None:
            body["_source"] = list(source)
        if sort is not None:
            body["sort"] = [dict(clause) for clause in sort]
        response = await self._request(
            "POST", path, json=body, allow=frozenset({_HTTP_NOT_FOUND})
        )
        if response.status_code == _HTTP_NOT_FOUND:
            return []
        return self._decode("POST", path, response, SearchResponse).hits.hits

    async def update(
        self, index: str, doc_id: str, doc: cabc.Mapping[str, typ.Any]
    ) -> None:
        """Partially update a document with ``POST /{index}/_update/{id}``."""
        await self._request(
            "POST", _doc_path(index, "_update", doc_id), json={"doc": dict(doc)}
        )

    async def index_document(
        self, index: str, doc_id: str, source: cabc.Mapping[str, typ.Any]
    ) -> None:
        """Create or replace a document with ``PUT /{index}/_doc/{id}``."""
        await self._request("PUT", _doc_path(index, "_doc", doc_id), json=dict(source))

    async def get_document(
        self, index: str, doc_id: str
    ) -> dict[str, typ.Any] | None:
        """Fetch a document's source; missing documents and indices give None."""
        path = _doc_path(index, "_doc", doc_id)
        response = await self._request(
            "GET", path, allow=frozenset({_HTTP_NOT_FOUND})
        )
        if response.status_code == _HTTP_NOT_FOUND:
            return None
        document = self._decode("GET", path, response, GetResponse)
        return document.source if document.found else None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        allow: frozenset[int] = frozenset(),
        **kwargs: typ.Any,  # noqa: ANN401
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise ElasticsearchError.transport(method, path) from exc
        status = response.status_code
        if status >= _HTTP_ERROR_STATUS_THRESHOLD and status not in allow:
            raise ElasticsearchError.http_error(
                method, path, status, response.text[:_REASON_EXCERPT] or None
            )
        return response

    @staticmethod
    def _decode[T](
        method: str, path: str, response: httpx.Response, kind: type[T]
    ) -> T:
        try:
            return msgspec.json.decode(response.content, type=kind)
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            raise ElasticsearchResponseError.undecodable(method, path) from exc
