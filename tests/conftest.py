"""Shared test fixtures for the chart_converter test suite.

WHY: Most test modules need the same small building blocks: source
entities written as (archetype, values), gzip source payloads, and a
throwaway archive database. Centralizing them here keeps every test's
chart readable at a glance.

HOW: Pytest fixtures provide a source-entity factory, a payload encoder,
a representative two-segment slide chart, and an ArchiveStore backed by
a file in tmp_path with the schema already created.

RULES:
- Source entities are written as (code, [values...]) exactly as archived
- The sample chart exercises notes, connectors, anchors, and a timing hint
- Each test gets a fresh database file
"""

import gzip
import json
from typing import Any, Dict, List, Sequence

import pytest

from chart_converter.core.ir import SourceEntity
from chart_converter.store import ArchiveStore


def source_document(entities: Sequence[Sequence[Any]]) -> Dict[str, Any]:
    """Build a raw source document from (code, values) pairs."""
    return {
        "entities": [
            {"archetype": code, "data": {"index": 0, "values": list(values)}}
            for code, values in entities
        ]
    }


# ---------------------------------------------------------------------------
# Sample chart
# ---------------------------------------------------------------------------

# bootstrap, a tap, a slide start at beat 1, two connector segments with
# no end note under the shared midpoint, a slide end, and a hint on the
# second segment
SAMPLE_CHART: List[tuple] = [
    (0, []),
    (1, []),
    (2, []),
    (3, [1, 0, 2]),
    (5, [1, 4, 2]),
    (9, [1, 4, 2, 2, 6, 2, 2]),
    (9, [2, 6, 2, 3, 6, 2, 2]),
    (7, [3, 6, 2]),
    (17, [2.5, 6, 2]),
]


@pytest.fixture
def make_entities():
    """Factory: [(code, values), ...] -> List[SourceEntity]."""

    def _make(entities: Sequence[Sequence[Any]]) -> List[SourceEntity]:
        return [SourceEntity(archetype=code, values=tuple(values)) for code, values in entities]

    return _make


@pytest.fixture
def make_payload():
    """Factory: [(code, values), ...] -> gzip-compressed source payload."""

    def _make(entities: Sequence[Sequence[Any]]) -> bytes:
        return gzip.compress(json.dumps(source_document(entities)).encode("utf-8"))

    return _make


@pytest.fixture
def sample_chart():
    return list(SAMPLE_CHART)


@pytest.fixture
def archive_store(tmp_path):
    """A fresh ArchiveStore with the files and levels tables created."""
    store = ArchiveStore(tmp_path / "archive.db")
    store.ensure_schema()
    yield store
    store.close()
