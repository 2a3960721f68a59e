"""Gzip+JSON codec for source and converted level data documents.

WHY: Both formats travel as gzip-compressed JSON. Decoding has to turn
every way a payload can be broken into one chart-fatal error type, and
encoding has to guarantee the target engine never receives a document
that violates its shape.

HOW: decode_source gunzips, parses, and builds SourceEntity objects.
encode_chart serializes a Chart, validates it against the bundled JSON
Schema with jsonschema, and gzips the compact JSON.

RULES:
- Any decompression/parse/shape failure raises MalformedSourceError
- Schema validation is mandatory — encode_chart raises on invalid output
- JSON is written compact (no indentation) to keep payloads small
"""

from __future__ import annotations

import gzip
import json
import zlib
from pathlib import Path
from typing import Any, List

import jsonschema

from chart_converter.core.errors import MalformedSourceError
from chart_converter.core.ir import Chart, SourceEntity

_SCHEMA_PATH = Path(__file__).resolve().parent / "level_data.schema.json"


def _load_schema() -> dict[str, Any]:
    """Load the NewLevelData JSON schema from disk.

    Cached at module level after first call to avoid repeated I/O.
    """
    with open(_SCHEMA_PATH) as f:
        return json.load(f)


_CACHED_SCHEMA: dict[str, Any] | None = None


def get_schema() -> dict[str, Any]:
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        _CACHED_SCHEMA = _load_schema()
    return _CACHED_SCHEMA


def decode_source(payload: bytes) -> List[SourceEntity]:
    """Decompress and parse a source LevelData payload.

    Args:
        payload: gzip-compressed JSON bytes as stored in the archive.

    Returns:
        The source entities in document order.

    Raises:
        MalformedSourceError: If the payload is not gzip, not JSON, or
            lacks an "entities" list of well-formed entities.
    """
    try:
        document = json.loads(gzip.decompress(payload))
    except (OSError, EOFError, zlib.error, ValueError) as exc:
        raise MalformedSourceError(f"Unreadable source payload: {exc}") from exc

    if not isinstance(document, dict) or not isinstance(document.get("entities"), list):
        raise MalformedSourceError("Source payload has no entities list")
    return [SourceEntity.from_dict(e) for e in document["entities"]]


def encode_chart(chart: Chart) -> bytes:
    """Serialize, validate, and compress a converted chart.

    Raises:
        jsonschema.ValidationError: If the document does not conform to
            level_data.schema.json.
    """
    document = chart.to_dict()
    jsonschema.validate(instance=document, schema=get_schema())
    return gzip.compress(json.dumps(document, separators=(",", ":")).encode("utf-8"))


def decode_chart(payload: bytes) -> dict[str, Any]:
    """Decompress a converted chart back into its JSON document."""
    return json.loads(gzip.decompress(payload))
