"""Unit tests for index creation and mapping verification."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from clinical_search.errors import (
    IndexNotReadyError,
    SchemaMismatchError,
    UnknownIndexError,
)
from clinical_search.models.index_schemas import (
    INDEX_NAMES,
    MEDICAL_CASES,
    PATIENTS,
    build_registry,
)
from clinical_search.services.schema_manager import SchemaManager, compare_mappings
from conftest import FakeElasticsearch


# --- compare_mappings ---


def test_compare_identical_mappings() -> None:
    mapping = build_registry(384)[PATIENTS].mapping()
    assert compare_mappings(mapping, mapping) == []


def test_compare_reports_dims_mismatch() -> None:
    expected = build_registry(384)[PATIENTS].mapping()
    live = build_registry(768)[PATIENTS].mapping()
    problems = compare_mappings(expected, live)
    assert problems == ["vector field 'symptoms_vector' has dims 768, expected 384"]


def test_compare_reports_type_mismatch() -> None:
    expected = {"properties": {"department": {"type": "keyword"}}}
    live = {"properties": {"department": {"type": "text"}}}
    assert compare_mappings(expected, live) == [
        "field 'department' has type 'text', expected 'keyword'"
    ]


def test_compare_object_without_type() -> None:
    expected = {"properties": {"lab_results": {"type": "object", "enabled": False}}}
    live = {"properties": {"lab_results": {"enabled": False}}}
    assert compare_mappings(expected, live) == []


# --- ensure_index ---


class TestEnsureIndex:
    async def test_creates_missing_index(
        self, schema_manager: SchemaManager, fake_es: FakeElasticsearch
    ) -> None:
        created = await schema_manager.ensure_index(PATIENTS)
        assert created is True
        vector = fake_es.mappings[PATIENTS]["properties"]["symptoms_vector"]
        assert vector == {
            "type": "dense_vector",
            "dims": 384,
            "index": True,
            "similarity": "cosine",
        }

    async def test_second_call_is_a_no_op(
        self, schema_manager: SchemaManager, fake_es: FakeElasticsearch
    ) -> None:
        assert await schema_manager.ensure_index(PATIENTS) is True
        assert await schema_manager.ensure_index(PATIENTS) is False
        assert fake_es.indices.created == [PATIENTS]

    async def test_ensure_all_creates_every_index(
        self, schema_manager: SchemaManager, fake_es: FakeElasticsearch
    ) -> None:
        result = await schema_manager.ensure_all()
        assert result == {name: True for name in INDEX_NAMES}
        assert set(fake_es.mappings) == set(INDEX_NAMES)

        again = await schema_manager.ensure_all()
        assert again == {name: False for name in INDEX_NAMES}

    async def test_existing_index_with_wrong_dims_is_left_alone(
        self, schema_manager: SchemaManager, fake_es: FakeElasticsearch
    ) -> None:
        stale = build_registry(768)[MEDICAL_CASES].mapping()
        fake_es.add_index(MEDICAL_CASES, stale)

        with pytest.raises(SchemaMismatchError) as exc_info:
            await schema_manager.ensure_index(MEDICAL_CASES)

        assert exc_info.value.code == "SCHEMA_MISMATCH"
        assert "dims 768, expected 384" in exc_info.value.message
        assert fake_es.mappings[MEDICAL_CASES] == stale
        assert fake_es.indices.created == []

    async def test_missing_field_is_a_mismatch(
        self, schema_manager: SchemaManager, fake_es: FakeElasticsearch
    ) -> None:
        mapping = build_registry(384)[PATIENTS].mapping()
        del mapping["properties"]["symptoms"]
        fake_es.add_index(PATIENTS, mapping)

        with pytest.raises(SchemaMismatchError) as exc_info:
            await schema_manager.ensure_index(PATIENTS)
        assert exc_info.value.problems == ["missing field 'symptoms'"]

    async def test_extra_live_fields_are_tolerated(
        self, schema_manager: SchemaManager, fake_es: FakeElasticsearch
    ) -> None:
        mapping = build_registry(384)[PATIENTS].mapping()
        mapping["properties"]["insurance_id"] = {"type": "keyword"}
        fake_es.add_index(PATIENTS, mapping)

        assert await schema_manager.ensure_index(PATIENTS) is False

    async def test_concurrent_creation_falls_back_to_verification(
        self, schema_manager: SchemaManager, fake_es: FakeElasticsearch, mocker
    ) -> None:
        # Another process creates the index between our exists and create calls.
        fake_es.add_index(PATIENTS, build_registry(384)[PATIENTS].mapping())
        mocker.patch.object(
            fake_es.indices, "exists", AsyncMock(side_effect=[False, True])
        )

        assert await schema_manager.ensure_index(PATIENTS) is False
        assert fake_es.indices.created == []

    async def test_unknown_index(self, schema_manager: SchemaManager) -> None:
        with pytest.raises(UnknownIndexError):
            await schema_manager.ensure_index("billing")


# --- verify_index ---


class TestVerifyIndex:
    async def test_absent_index_is_not_created(
        self, schema_manager: SchemaManager, fake_es: FakeElasticsearch
    ) -> None:
        with pytest.raises(IndexNotReadyError) as exc_info:
            await schema_manager.verify_index(PATIENTS)
        assert exc_info.value.code == "INDEX_NOT_READY"
        assert PATIENTS not in fake_es.mappings

    async def test_returns_live_mapping(
        self, schema_manager: SchemaManager, ready_indices: None
    ) -> None:
        live = await schema_manager.verify_index(PATIENTS)
        assert live["properties"]["patient_id"] == {"type": "keyword"}
        assert await schema_manager.get_mapping(PATIENTS) == live
