"""Embedding producers: turn clinical free text into fixed-length vectors.

The producer is an external model call. Its only contract here is the
output length (``embedding_dimensions``), which callers verify; vectors
are never padded or truncated.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from google import genai
from google.genai import types

from clinical_search.config import Settings, settings as default_settings
from clinical_search.errors import ConfigurationError, EmbeddingError
from clinical_search.services.retry import call_with_retry

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    async def embed_document(self, text: str) -> list[float]: ...

    async def embed_query(self, text: str) -> list[float]: ...


def _preview(text: str) -> str:
    return text[:100] + ("..." if len(text) > 100 else "")


class HuggingFaceEmbedder:
    """Sentence-transformer embeddings via the Hugging Face inference API."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or default_settings
        self._http_client = http_client
        self._url = self._settings.embedding_url.format(
            model=self._settings.embedding_model
        )

    async def embed_document(self, text: str) -> list[float]:
        return await self._embed(text)

    async def embed_query(self, text: str) -> list[float]:
        return await self._embed(text)

    async def _embed(self, text: str) -> list[float]:
        logger.debug("Embedding (%d chars): %r", len(text), _preview(text))
        payload = await call_with_retry(
            "embedding request",
            lambda: self._post(text),
            settings=self._settings,
        )
        vector = _unwrap_vector(payload)
        logger.debug("Embedded text -> %d-dim vector", len(vector))
        return vector

    async def _post(self, text: str) -> object:
        body = {"inputs": text, "options": {"wait_for_model": True}}
        headers = {"Authorization": f"Bearer {self._settings.embedding_api_key}"}
        if self._http_client is not None:
            resp = await self._http_client.post(self._url, json=body, headers=headers)
        else:
            async with httpx.AsyncClient() as client:
                resp = await client.post(self._url, json=body, headers=headers)
        resp.raise_for_status()
        return resp.json()


def _unwrap_vector(payload: object) -> list[float]:
    """Accept ``[f, ...]`` or a single nested ``[[f, ...]]`` response."""
    if (
        isinstance(payload, list)
        and len(payload) == 1
        and isinstance(payload[0], list)
    ):
        payload = payload[0]
    if not isinstance(payload, list) or not all(
        isinstance(v, (int, float)) for v in payload
    ):
        raise EmbeddingError("Unexpected embedding response shape")
    return [float(v) for v in payload]


class GoogleEmbedder:
    """Embeddings via google-genai with a requested output dimensionality."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: genai.Client | None = None,
    ) -> None:
        self._settings = settings or default_settings
        self._client = client

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if self._settings.embedding_api_key:
                self._client = genai.Client(api_key=self._settings.embedding_api_key)
            else:
                self._client = genai.Client(
                    vertexai=True,
                    project=self._settings.gcp_project_id,
                    location=self._settings.gcp_location,
                )
        return self._client

    async def embed_document(self, text: str) -> list[float]:
        return await self._embed(text, "RETRIEVAL_DOCUMENT")

    async def embed_query(self, text: str) -> list[float]:
        return await self._embed(text, "RETRIEVAL_QUERY")

    async def _embed(self, text: str, task_type: str) -> list[float]:
        logger.debug(
            "Embedding %s (%d chars): %r", task_type, len(text), _preview(text)
        )
        client = self._get_client()
        response = await call_with_retry(
            "embedding request",
            lambda: client.aio.models.embed_content(
                model=self._settings.embedding_model,
                contents=[text],
                config=types.EmbedContentConfig(
                    output_dimensionality=self._settings.embedding_dimensions,
                    task_type=task_type,
                ),
            ),
            settings=self._settings,
        )
        if not response.embeddings or not response.embeddings[0].values:
            raise EmbeddingError("Embedding response carried no vector")
        vector = list(response.embeddings[0].values)
        logger.debug("Embedded text -> %d-dim vector", len(vector))
        return vector


def get_embedder(settings: Settings | None = None) -> Embedder:
    """Select the embedding producer configured by ``embedding_provider``."""
    cfg = settings or default_settings
    if cfg.embedding_provider == "huggingface":
        return HuggingFaceEmbedder(cfg)
    if cfg.embedding_provider == "google":
        return GoogleEmbedder(cfg)
    raise ConfigurationError(
        ["EMBEDDING_PROVIDER"],
        f"Unknown embedding provider {cfg.embedding_provider!r}",
    )
