"""Dataclasses for source entities, target entities, and converted charts.

WHY: The source engine stores every entity as an archetype code plus a
flat list of numbers whose meaning depends on position. The target engine
stores named archetypes whose data is a list of named fields, each either
a literal number or a reference to another entity. Typed classes make the
two shapes explicit and keep the converter honest about which is which.

HOW: Five types:
  SourceEntity — one source entity (archetype code + positional values)
  Literal      — a named field holding a number
  Reference    — a named field pointing at another entity's identifier
  TargetEntity — one target entity (archetype name, fields, own identifier)
  Chart        — a converted chart ready for serialization

RULES:
- A field is exactly one of Literal or Reference, never both
- TargetEntity.ref is set only for entities referenced elsewhere
- Identifiers are str(source index) or s-<idx> / e-<idx> for anchors
- Serialized shape: {"archetype", "data": [{"name", "value"|"ref"}], "ref"?}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple, Union

from chart_converter.core.errors import MalformedSourceError


class AnchorKey(NamedTuple):
    """Geometric identity of a slide endpoint: (beat, lane, size)."""

    beat: float
    lane: float
    size: float


@dataclass(frozen=True)
class SourceEntity:
    """One entity of the source LevelData document.

    RULES:
    - archetype: integer code 0–17 (others are rejected by the resolver)
    - values: positional numbers; [0:3] is (beat, lane, size) for notes
    """

    archetype: int
    values: tuple[float, ...]

    @property
    def key(self) -> AnchorKey:
        return AnchorKey(self.values[0], self.values[1], self.values[2])

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceEntity:
        """Parse a raw {"archetype": int, "data": {"values": [...]}} object."""
        try:
            archetype = data["archetype"]
            values = data["data"]["values"]
        except (KeyError, TypeError) as exc:
            raise MalformedSourceError(f"Malformed source entity: {data!r}") from exc
        if not isinstance(archetype, int) or not isinstance(values, list):
            raise MalformedSourceError(f"Malformed source entity: {data!r}")
        return cls(archetype=archetype, values=tuple(values))


@dataclass(frozen=True)
class Literal:
    name: str
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True)
class Reference:
    name: str
    ref: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "ref": self.ref}


Field = Union[Literal, Reference]


@dataclass
class TargetEntity:
    """One entity of the target document."""

    archetype: str
    data: list[Field] = field(default_factory=list)
    ref: str | None = None

    def value_of(self, name: str) -> float | None:
        """Return the literal value of a named field, or None."""
        for f in self.data:
            if f.name == name and isinstance(f, Literal):
                return f.value
        return None

    def ref_of(self, name: str) -> str | None:
        """Return the reference target of a named field, or None."""
        for f in self.data:
            if f.name == name and isinstance(f, Reference):
                return f.ref
        return None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "archetype": self.archetype,
            "data": [f.to_dict() for f in self.data],
        }
        if self.ref is not None:
            out["ref"] = self.ref
        return out


@dataclass
class Chart:
    """A converted chart.

    RULES:
    - name: archive level name (e.g. "frpt-abc123")
    - bgm_offset: always 0 for converted charts
    - entities: bootstrap, primaries + anchors, attachments, sim-lines
    """

    name: str
    bgm_offset: float
    entities: list[TargetEntity]

    def to_dict(self) -> dict[str, Any]:
        return {
            "bgmOffset": self.bgm_offset,
            "entities": [e.to_dict() for e in self.entities],
        }
