"""Test fixtures: an in-memory Elasticsearch double and a fake embedder."""

from __future__ import annotations

import asyncio
import copy
import hashlib
import math
import re
from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any

import pytest
from elasticsearch import ApiError, BadRequestError, NotFoundError
from httpx import ASGITransport, AsyncClient

from clinical_search.config import Settings
from clinical_search.dependencies import (
    get_document_writer,
    get_health_checker,
    get_query_service,
)
from clinical_search.main import app
from clinical_search.models.index_schemas import IndexSchema, build_registry
from clinical_search.services.document_writer import DocumentWriter
from clinical_search.services.health_checker import HealthChecker
from clinical_search.services.query_service import QueryService
from clinical_search.services.schema_manager import SchemaManager

DIMS = 384


def api_error(cls: type[ApiError], status: int, error_type: str) -> ApiError:
    """Build a client ApiError the way the transport raises it."""
    return cls(
        message=error_type,
        meta=SimpleNamespace(status=status),
        body={"error": {"type": error_type}, "status": status},
    )


# --- Fake cluster ---


def _term_matches(term: dict[str, Any], source: dict[str, Any]) -> bool:
    ((field, value),) = term.items()
    if isinstance(value, dict):
        value = value["value"]
    actual = source.get(field)
    if isinstance(actual, list):
        return value in actual
    return actual == value


def _matches(query: dict[str, Any] | None, source: dict[str, Any]) -> bool:
    if not query or "match_all" in query:
        return True
    if "term" in query:
        return _term_matches(query["term"], source)
    if "terms" in query:
        ((field, values),) = query["terms"].items()
        return source.get(field) in values
    if "bool" in query:
        clauses = query["bool"].get("filter", []) + query["bool"].get("must", [])
        return all(_matches(c, source) for c in clauses)
    raise NotImplementedError(f"fake cluster does not support query {query}")


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FakeIndices:
    def __init__(self, es: FakeElasticsearch) -> None:
        self._es = es
        self.created: list[str] = []

    async def exists(self, index: str) -> bool:
        return index in self._es.mappings

    async def create(
        self, index: str, mappings: dict[str, Any] | None = None, **kwargs: Any
    ) -> dict[str, Any]:
        if index in self._es.mappings:
            raise api_error(BadRequestError, 400, "resource_already_exists_exception")
        self._es.add_index(index, mappings)
        self.created.append(index)
        return {"acknowledged": True, "index": index}

    async def get_mapping(self, index: str) -> dict[str, Any]:
        self._es.require_index(index)
        return {index: {"mappings": copy.deepcopy(self._es.mappings[index])}}

    async def refresh(self, index: str | None = None) -> dict[str, Any]:
        return {}


class FakeClusterApi:
    def __init__(self, es: FakeElasticsearch) -> None:
        self._es = es

    async def health(self) -> dict[str, Any]:
        return {
            "cluster_name": "fake",
            "status": self._es.health_status,
            "number_of_nodes": 1,
        }


class FakeElasticsearch:
    """Just enough of AsyncElasticsearch for the clinical search services."""

    def __init__(self) -> None:
        self.mappings: dict[str, dict[str, Any]] = {}
        self.docs: dict[str, dict[str, dict[str, Any]]] = {}
        self.health_status = "green"
        self.indices = FakeIndices(self)
        self.cluster = FakeClusterApi(self)
        self.write_calls: list[dict[str, Any]] = []
        self.search_calls: list[dict[str, Any]] = []
        self.closed = False

    def add_index(self, index: str, mappings: dict[str, Any] | None = None) -> None:
        self.mappings[index] = copy.deepcopy(mappings or {"properties": {}})
        self.docs.setdefault(index, {})

    def require_index(self, index: str) -> None:
        if index not in self.mappings:
            raise api_error(NotFoundError, 404, "index_not_found_exception")

    async def info(self) -> dict[str, Any]:
        return {"cluster_name": "fake", "version": {"number": "8.13.0"}}

    async def close(self) -> None:
        self.closed = True

    async def index(
        self,
        index: str,
        id: str,
        document: dict[str, Any],
        refresh: str | bool | None = None,
    ) -> dict[str, Any]:
        if index not in self.mappings:
            self.add_index(index)
        self.write_calls.append(
            {"op": "index", "index": index, "id": id, "refresh": refresh}
        )
        result = "updated" if id in self.docs[index] else "created"
        self.docs[index][id] = copy.deepcopy(document)
        return {"_index": index, "_id": id, "result": result}

    async def update(
        self,
        index: str,
        id: str,
        doc: dict[str, Any],
        upsert: dict[str, Any] | None = None,
        refresh: str | bool | None = None,
    ) -> dict[str, Any]:
        self.require_index(index)
        self.write_calls.append(
            {"op": "update", "index": index, "id": id, "refresh": refresh}
        )
        if id not in self.docs[index]:
            if upsert is None:
                raise api_error(NotFoundError, 404, "document_missing_exception")
            self.docs[index][id] = copy.deepcopy(upsert)
            return {"_index": index, "_id": id, "result": "created"}
        self.docs[index][id].update(copy.deepcopy(doc))
        return {"_index": index, "_id": id, "result": "updated"}

    async def count(self, index: str) -> dict[str, Any]:
        self.require_index(index)
        return {"count": len(self.docs[index])}

    async def search(
        self,
        index: str,
        query: dict[str, Any] | None = None,
        knn: dict[str, Any] | None = None,
        size: int = 10,
        sort: list[dict[str, Any]] | None = None,
        collapse: dict[str, Any] | None = None,
        source_includes: list[str] | None = None,
        source_excludes: list[str] | None = None,
    ) -> dict[str, Any]:
        self.require_index(index)
        self.search_calls.append(
            {
                "index": index,
                "query": query,
                "knn": knn,
                "size": size,
                "sort": sort,
                "collapse": collapse,
            }
        )
        scored: list[tuple[float, str, dict[str, Any]]] = []
        if knn is not None:
            for doc_id, source in self.docs[index].items():
                vector = source.get(knn["field"])
                if vector is None or not _matches(knn.get("filter"), source):
                    continue
                score = (1 + _cosine(knn["query_vector"], vector)) / 2
                scored.append((score, doc_id, source))
            scored.sort(key=lambda t: t[0], reverse=True)
            scored = scored[: knn["k"]]
        else:
            for doc_id, source in self.docs[index].items():
                if _matches(query, source):
                    scored.append((1.0, doc_id, source))
            for spec in reversed(sort or []):
                ((field, opts),) = spec.items()
                scored.sort(
                    key=lambda t: t[2].get(field), reverse=opts.get("order") == "desc"
                )
        if collapse is not None:
            # First hit per field value wins, as in the cluster.
            seen: set[Any] = set()
            collapsed = []
            for item in scored:
                key = item[2].get(collapse["field"])
                if key not in seen:
                    seen.add(key)
                    collapsed.append(item)
            scored = collapsed

        hits = []
        for score, doc_id, source in scored[:size]:
            body = {
                k: copy.deepcopy(v)
                for k, v in source.items()
                if k not in (source_excludes or [])
                and (source_includes is None or k in source_includes)
            }
            hits.append(
                {"_index": index, "_id": doc_id, "_score": score, "_source": body}
            )
        return {"hits": {"total": {"value": len(scored)}, "hits": hits}}


# --- Fake embedder ---


def bag_of_words_vector(text: str, dims: int = DIMS) -> list[float]:
    """Deterministic vector where shared words mean higher cosine similarity."""
    vector = [0.0] * dims
    for token in re.findall(r"[a-z0-9]+", text.lower()):
        bucket = int(hashlib.md5(token.encode()).hexdigest(), 16) % dims
        vector[bucket] += 1.0
    if not any(vector):
        vector[0] = 1.0
    return vector


class FakeEmbedder:
    def __init__(self, dims: int = DIMS) -> None:
        self.dims = dims
        self.override: list[float] | None = None
        self.delay = 0.0
        self.calls: list[tuple[str, str]] = []

    async def _embed(self, kind: str, text: str) -> list[float]:
        self.calls.append((kind, text))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.override is not None:
            return list(self.override)
        return bag_of_words_vector(text, self.dims)

    async def embed_document(self, text: str) -> list[float]:
        return await self._embed("document", text)

    async def embed_query(self, text: str) -> list[float]:
        return await self._embed("query", text)


# --- Fixtures ---


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        elasticsearch_url="http://localhost:9200",
        elasticsearch_username="elastic",
        elasticsearch_password="changeme",
        embedding_api_key="hf_test_key",
        embedding_dimensions=DIMS,
        request_timeout=2.0,
        retry_attempts=3,
        retry_backoff=0,
        retry_backoff_max=0,
    )


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    return FakeElasticsearch()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def registry() -> dict[str, IndexSchema]:
    return build_registry(DIMS)


@pytest.fixture
def schema_manager(
    fake_es: FakeElasticsearch,
    registry: dict[str, IndexSchema],
    test_settings: Settings,
) -> SchemaManager:
    return SchemaManager(fake_es, registry, test_settings)


@pytest.fixture
def writer(
    fake_es: FakeElasticsearch,
    embedder: FakeEmbedder,
    registry: dict[str, IndexSchema],
    test_settings: Settings,
) -> DocumentWriter:
    return DocumentWriter(fake_es, embedder, registry, test_settings)


@pytest.fixture
def query_service(
    fake_es: FakeElasticsearch,
    embedder: FakeEmbedder,
    registry: dict[str, IndexSchema],
    test_settings: Settings,
) -> QueryService:
    return QueryService(fake_es, embedder, registry, test_settings)


@pytest.fixture
def health_checker(
    fake_es: FakeElasticsearch,
    schema_manager: SchemaManager,
    embedder: FakeEmbedder,
    registry: dict[str, IndexSchema],
    test_settings: Settings,
) -> HealthChecker:
    return HealthChecker(fake_es, schema_manager, embedder, registry, test_settings)


@pytest.fixture
async def ready_indices(schema_manager: SchemaManager) -> None:
    await schema_manager.ensure_all()


@pytest.fixture
async def client(
    query_service: QueryService,
    writer: DocumentWriter,
    health_checker: HealthChecker,
) -> AsyncIterator[AsyncClient]:
    app.dependency_overrides[get_query_service] = lambda: query_service
    app.dependency_overrides[get_document_writer] = lambda: writer
    app.dependency_overrides[get_health_checker] = lambda: health_checker
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
