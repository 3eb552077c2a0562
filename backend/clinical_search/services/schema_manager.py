"""Index schema management: create missing indices, verify existing ones."""

from __future__ import annotations

import logging
from typing import Any

from elasticsearch import AsyncElasticsearch, BadRequestError

from clinical_search.config import Settings, settings as default_settings
from clinical_search.errors import (
    IndexNotReadyError,
    SchemaMismatchError,
    UnknownIndexError,
)
from clinical_search.models.index_schemas import IndexSchema, build_registry
from clinical_search.services.retry import call_with_retry

logger = logging.getLogger(__name__)


def _field_type(spec: dict[str, Any]) -> str:
    # Object fields come back without "type" when they have sub-properties.
    return spec.get("type", "object")


def compare_mappings(expected: dict[str, Any], live: dict[str, Any]) -> list[str]:
    """List differences between an expected and a live mapping.

    Every expected field must exist with the same type, and dense vector
    fields must have the same dimensionality. Extra live fields are allowed.
    """
    problems: list[str] = []
    live_props = live.get("properties", {})
    for name, spec in expected.get("properties", {}).items():
        actual = live_props.get(name)
        if actual is None:
            problems.append(f"missing field '{name}'")
            continue
        if _field_type(spec) != _field_type(actual):
            problems.append(
                f"field '{name}' has type {_field_type(actual)!r}, "
                f"expected {_field_type(spec)!r}"
            )
            continue
        if spec.get("type") == "dense_vector" and spec.get("dims") != actual.get(
            "dims"
        ):
            problems.append(
                f"vector field '{name}' has dims {actual.get('dims')}, "
                f"expected {spec.get('dims')}"
            )
    return problems


class SchemaManager:
    """Owns creation and verification of the clinical indices.

    Never deletes or reindexes; a mismatch needs an explicit migration.
    """

    def __init__(
        self,
        client: AsyncElasticsearch,
        registry: dict[str, IndexSchema] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or default_settings
        self.registry = registry or build_registry(self._settings.embedding_dimensions)

    def schema(self, name: str) -> IndexSchema:
        try:
            return self.registry[name]
        except KeyError:
            raise UnknownIndexError(name) from None

    def _expected(self, name: str, mapping: dict[str, Any] | None) -> dict[str, Any]:
        return mapping if mapping is not None else self.schema(name).mapping()

    async def exists(self, name: str) -> bool:
        return bool(
            await call_with_retry(
                f"exists {name}",
                lambda: self._client.indices.exists(index=name),
                settings=self._settings,
            )
        )

    async def get_mapping(self, name: str) -> dict[str, Any]:
        """Return the live mapping of ``name`` (``{"properties": ...}``)."""
        resp = await call_with_retry(
            f"get_mapping {name}",
            lambda: self._client.indices.get_mapping(index=name),
            settings=self._settings,
        )
        return dict(resp[name]["mappings"])

    async def verify_index(
        self, name: str, mapping: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Check an existing index against its expected mapping without changes.

        Returns the live mapping. Raises ``IndexNotReadyError`` if the index
        is absent and ``SchemaMismatchError`` on any difference.
        """
        expected = self._expected(name, mapping)
        if not await self.exists(name):
            raise IndexNotReadyError(name, "index does not exist")
        live = await self.get_mapping(name)
        problems = compare_mappings(expected, live)
        if problems:
            logger.error("Index '%s' mapping mismatch: %s", name, problems)
            raise SchemaMismatchError(name, problems)
        return live

    async def ensure_index(
        self, name: str, mapping: dict[str, Any] | None = None
    ) -> bool:
        """Create ``name`` if missing, otherwise verify it. True if created."""
        expected = self._expected(name, mapping)
        if not await self.exists(name):
            try:
                await call_with_retry(
                    f"create {name}",
                    lambda: self._client.indices.create(index=name, mappings=expected),
                    settings=self._settings,
                )
            except BadRequestError as e:
                if e.error != "resource_already_exists_exception":
                    raise
                logger.info("Index '%s' was created concurrently", name)
            else:
                logger.info("Created index '%s'", name)
                return True
        await self.verify_index(name, expected)
        logger.info("Index '%s' already exists, mapping verified", name)
        return False

    async def ensure_all(self) -> dict[str, bool]:
        return {name: await self.ensure_index(name) for name in self.registry}
