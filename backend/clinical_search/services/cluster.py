"""Shared Elasticsearch client (lazy init)."""

from __future__ import annotations

import logging
from typing import Any

from elasticsearch import AsyncElasticsearch

from clinical_search.config import Settings, settings
from clinical_search.errors import ConfigurationError

logger = logging.getLogger(__name__)

_es_client: AsyncElasticsearch | None = None


def create_es_client(cfg: Settings) -> AsyncElasticsearch:
    """Build a client from settings.

    Client-side retries are disabled; ``call_with_retry`` owns retry policy
    so that only idempotent calls are repeated.
    """
    missing = [
        name
        for name in cfg.missing_required()
        if name.startswith("ELASTICSEARCH_")
    ]
    if missing:
        raise ConfigurationError(missing)
    return AsyncElasticsearch(
        cfg.elasticsearch_url,
        basic_auth=(cfg.elasticsearch_username, cfg.elasticsearch_password),
        verify_certs=cfg.elasticsearch_verify_certs,
        request_timeout=cfg.request_timeout,
        max_retries=0,
        retry_on_timeout=False,
    )


def get_es_client() -> AsyncElasticsearch:
    """Get or create the shared async Elasticsearch client."""
    global _es_client
    if _es_client is None:
        _es_client = create_es_client(settings)
        logger.info("Elasticsearch client created for %s", settings.elasticsearch_url)
    return _es_client


async def close_es_client() -> None:
    global _es_client
    if _es_client is not None:
        await _es_client.close()
        _es_client = None


def response_body(resp: Any) -> dict[str, Any]:
    """Plain dict body of a client response."""
    return getattr(resp, "body", resp)
