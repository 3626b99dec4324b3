"""Request and response shapes for the Elasticsearch REST API."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ

import msgspec


@dataclasses.dataclass(frozen=True, slots=True)
class IndexOperation:
    """A bulk ``index`` action: create or fully replace one document."""

    index: str
    doc_id: str
    source: cabc.Mapping[str, typ.Any]


class BulkItemResult(msgspec.Struct, kw_only=True, frozen=True):
    """Outcome of one action inside a bulk response."""

    index: str | None = msgspec.field(default=None, name="_index")
    doc_id: str | None = msgspec.field(default=None, name="_id")
    status: int
    error: dict[str, typ.Any] | None = None

    @property
    def failed(self) -> bool:
        """Return True when the item carries an error."""
        return self.error is not None

    @property
    def reason(self) -> str | None:
        """Return the error's human readable reason, if any."""
        if self.error is None:
            return None
        reason = self.error.get("reason")
        return str(reason) if reason is not None else str(self.error.get("type"))


class _BulkItemEnvelope(msgspec.Struct, kw_only=True, frozen=True):
    index: BulkItemResult | None = None


class BulkResponse(msgspec.Struct, kw_only=True, frozen=True):
    """Decoded ``POST /_bulk`` response."""

    errors: bool = False
    items: list[_BulkItemEnvelope] = msgspec.field(default_factory=list)

    @property
    def results(self) -> list[BulkItemResult]:
        """Return the per-document results in request order."""
        return [item.index for item in self.items if item.index is not None]

    @property
    def failed_items(self) -> list[BulkItemResult]:
        """Return the items Elasticsearch rejected."""
        return [item for item in self.results if item.failed]


class SearchHit(msgspec.Struct, kw_only=True, frozen=True):
    """One search hit with its id and (possibly projected) source."""

    doc_id: str = msgspec.field(name="_id")
    source: dict[str, typ.Any] = msgspec.field(default_factory=dict, name="_source")


class _Hits(msgspec.Struct, kw_only=True, frozen=True):
    hits: list[SearchHit] = msgspec.field(default_factory=list)


class SearchResponse(msgspec.Struct, kw_only=True, frozen=True):
    """Decoded ``POST /{index}/_search`` response."""

    hits: _Hits = msgspec.field(default_factory=_Hits)


class GetResponse(msgspec.Struct, kw_only=True, frozen=True):
    """Decoded ``GET /{index}/_doc/{id}`` response."""

    found: bool = False
    source: dict[str, typ.Any] | None = msgspec.field(default=None, name="_source")
