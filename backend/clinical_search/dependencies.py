"""Service wiring shared by the HTTP app and the diagnostic CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from elasticsearch import AsyncElasticsearch

from clinical_search.config import Settings, settings
from clinical_search.errors import ConfigurationError
from clinical_search.models.index_schemas import IndexSchema, build_registry
from clinical_search.services.cluster import create_es_client, get_es_client
from clinical_search.services.document_writer import DocumentWriter
from clinical_search.services.embedding_service import Embedder, get_embedder
from clinical_search.services.health_checker import HealthChecker
from clinical_search.services.query_service import QueryService
from clinical_search.services.schema_manager import SchemaManager

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    registry: dict[str, IndexSchema]
    health: HealthChecker
    client: AsyncElasticsearch | None = None
    embedder: Embedder | None = None
    schema_manager: SchemaManager | None = None
    writer: DocumentWriter | None = None
    query: QueryService | None = None

    def require(self) -> Services:
        """Raise ``ConfigurationError`` unless cluster and embedder are wired."""
        if self.client is None or self.embedder is None:
            raise ConfigurationError(
                self.settings.missing_required() or ["EMBEDDING_PROVIDER"]
            )
        return self


def build_services(
    cfg: Settings,
    client: AsyncElasticsearch | None = None,
    embedder: Embedder | None = None,
) -> Services:
    """Wire every service from settings.

    Components whose configuration is missing are left as ``None`` so the
    health checker can still run and report what is missing.
    """
    registry = build_registry(cfg.embedding_dimensions)
    if client is None:
        try:
            client = create_es_client(cfg)
        except ConfigurationError as e:
            logger.warning("Cluster client not configured: %s", e.message)
    if embedder is None and "EMBEDDING_API_KEY" not in cfg.missing_required():
        try:
            embedder = get_embedder(cfg)
        except ConfigurationError as e:
            logger.warning("Embedder not configured: %s", e.message)

    schema_manager = (
        SchemaManager(client, registry, cfg) if client is not None else None
    )
    services = Services(
        settings=cfg,
        registry=registry,
        health=HealthChecker(client, schema_manager, embedder, registry, cfg),
        client=client,
        embedder=embedder,
        schema_manager=schema_manager,
    )
    if client is not None and embedder is not None:
        services.writer = DocumentWriter(client, embedder, registry, cfg)
        services.query = QueryService(client, embedder, registry, cfg)
    return services


_services: Services | None = None


def get_services() -> Services:
    """Application-wide services backed by the shared cluster client."""
    global _services
    if _services is None:
        try:
            client = get_es_client()
        except ConfigurationError:
            client = None
        _services = build_services(settings, client=client)
    return _services


def reset_services() -> None:
    global _services
    _services = None


def get_query_service() -> QueryService:
    return get_services().require().query


def get_document_writer() -> DocumentWriter:
    return get_services().require().writer


def get_health_checker() -> HealthChecker:
    return get_services().health
