"""Elasticsearch access: the REST client, index names and the bulk writer."""

from __future__ import annotations

from .client import ElasticsearchClient, ElasticsearchConfig, SearchIndex
from .errors import ElasticsearchError, ElasticsearchResponseError
from .models import BulkItemResult, BulkResponse, IndexOperation, SearchHit
from .naming import CACHE_INDEX, issue_index_name

__all__ = [
    "CACHE_INDEX",
    "BulkItemResult",
    "BulkResponse",
    "ElasticsearchClient",
    "ElasticsearchConfig",
    "ElasticsearchError",
    "ElasticsearchResponseError",
    "IndexOperation",
    "SearchHit",
    "SearchIndex",
    "issue_index_name",
]
