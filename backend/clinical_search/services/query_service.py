"""Read-only queries: exact lookups, term filters and kNN similarity."""

from __future__ import annotations

import logging
from typing import Any

from elasticsearch import AsyncElasticsearch

from clinical_search.config import Settings, settings as default_settings
from clinical_search.errors import (
    InvalidEnumValueError,
    UnknownIndexError,
    UnsupportedIndexError,
    ValidationError,
)
from clinical_search.models.index_schemas import (
    FILTERABLE_TYPES,
    IndexSchema,
    build_registry,
)
from clinical_search.models.search import SearchHit
from clinical_search.services.embedding_service import Embedder
from clinical_search.services.retry import call_with_retry

logger = logging.getLogger(__name__)

# Candidates fetched per requested hit on versioned indices, so that dropping
# superseded versions still leaves enough hits.
VERSION_OVERFETCH = 3


def _to_hits(index: str, resp: Any) -> list[SearchHit]:
    return [
        SearchHit(
            index=hit.get("_index", index),
            id=hit["_id"],
            score=hit.get("_score"),
            source=hit.get("_source", {}),
        )
        for hit in resp["hits"]["hits"]
    ]


class QueryService:
    def __init__(
        self,
        client: AsyncElasticsearch,
        embedder: Embedder,
        registry: dict[str, IndexSchema] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._client = client
        self._embedder = embedder
        self._settings = settings or default_settings
        self.registry = registry or build_registry(self._settings.embedding_dimensions)

    def _schema(self, name: str) -> IndexSchema:
        try:
            return self.registry[name]
        except KeyError:
            raise UnknownIndexError(name) from None

    def _term(self, schema: IndexSchema, field: str, value: Any) -> dict[str, Any]:
        field_type = schema.field_type(field)
        if field_type not in FILTERABLE_TYPES:
            raise ValidationError(
                f"{schema.name}: field '{field}' does not support exact-match filters"
            )
        allowed = schema.enum_fields.get(field)
        if allowed is not None and value not in allowed:
            raise InvalidEnumValueError(field, value, allowed)
        return {"term": {field: value}}

    async def _search(self, index: str, **body: Any) -> list[SearchHit]:
        if not body.get("source_excludes"):
            body.pop("source_excludes", None)
        logger.debug("Search %s: query=%s", index, body.get("query"))
        resp = await call_with_retry(
            f"search {index}",
            lambda: self._client.search(index=index, **body),
            settings=self._settings,
        )
        return _to_hits(index, resp)

    async def _latest_only(
        self, schema: IndexSchema, hits: list[SearchHit]
    ) -> list[SearchHit]:
        """Drop hits that are not the newest version of their record or case."""
        if not schema.versioned or not hits:
            return hits
        ids = sorted({h.source[schema.id_field] for h in hits})
        newest = await self._search(
            schema.name,
            query={"bool": {"filter": [{"terms": {schema.id_field: ids}}]}},
            collapse={"field": schema.id_field},
            sort=[{"version": {"order": "desc"}}],
            size=len(ids),
            source_includes=[schema.id_field, "version"],
        )
        latest = {h.source[schema.id_field]: h.source["version"] for h in newest}
        return [
            h
            for h in hits
            if h.source.get("version") == latest.get(h.source[schema.id_field])
        ]

    def _source_excludes(self, schema: IndexSchema, include_vectors: bool) -> list[str]:
        if include_vectors or not schema.vector_field:
            return []
        return [schema.vector_field]

    async def find_by_id(
        self, index: str, doc_id: str, include_vectors: bool = False
    ) -> SearchHit | None:
        """Exact lookup on the index's id field. Not-found returns None.

        Versioned indices return the latest version.
        """
        schema = self._schema(index)
        body: dict[str, Any] = {
            "query": {"term": {schema.id_field: doc_id}},
            "size": 1,
            "source_excludes": self._source_excludes(schema, include_vectors),
        }
        if schema.versioned:
            body["sort"] = [{"version": {"order": "desc"}}]
        hits = await self._search(index, **body)
        return hits[0] if hits else None

    async def filter_by(
        self,
        index: str,
        field: str,
        value: Any,
        size: int = 100,
        include_vectors: bool = False,
    ) -> list[SearchHit]:
        """Exact-match term filter, in the order the cluster returns hits.

        Versioned indices only match the newest version of each record.
        """
        schema = self._schema(index)
        fetch = size * VERSION_OVERFETCH if schema.versioned else size
        hits = await self._search(
            index,
            query={"bool": {"filter": [self._term(schema, field, value)]}},
            size=fetch,
            source_excludes=self._source_excludes(schema, include_vectors),
        )
        hits = (await self._latest_only(schema, hits))[:size]
        logger.info("filter %s %s=%r -> %d hits", index, field, value, len(hits))
        return hits

    async def find_similar(
        self,
        index: str,
        query_text: str,
        k: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        """Top-``k`` documents by vector similarity to ``query_text``.

        Superseded versions of records and cases are never returned.
        """
        schema = self._schema(index)
        if not schema.has_vector:
            raise UnsupportedIndexError(index)
        if k < 1:
            raise ValidationError("k must be at least 1")
        if not query_text.strip():
            raise ValidationError("query text must not be empty")

        query_vector = await self._embedder.embed_query(query_text)
        if len(query_vector) != schema.dims:
            raise ValidationError(
                f"query vector has {len(query_vector)} dimensions, "
                f"expected {schema.dims}"
            )

        fetch = k * VERSION_OVERFETCH if schema.versioned else k
        knn: dict[str, Any] = {
            "field": schema.vector_field,
            "query_vector": query_vector,
            "k": fetch,
            "num_candidates": max(fetch, self._settings.knn_num_candidates),
        }
        if filters:
            knn["filter"] = {
                "bool": {
                    "filter": [self._term(schema, f, v) for f, v in filters.items()]
                }
            }
        hits = await self._search(
            index,
            knn=knn,
            size=fetch,
            source_excludes=[schema.vector_field],
        )
        hits = await self._latest_only(schema, hits)
        hits.sort(key=lambda h: h.score or 0.0, reverse=True)
        logger.info(
            "kNN %s k=%d filters=%r -> %d hits", index, k, filters, len(hits[:k])
        )
        return hits[:k]

    async def count(self, index: str) -> int:
        self._schema(index)
        resp = await call_with_retry(
            f"count {index}",
            lambda: self._client.count(index=index),
            settings=self._settings,
        )
        return int(resp["count"])
