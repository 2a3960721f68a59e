"""Entity reference resolution: source entities → target notes and connectors.

WHY: The source format stores each slide segment as a connector carrying
the raw coordinates of both endpoints. The target engine instead models a
slide as connectors that reference their endpoint notes by identity. Every
connector therefore has to find the playable note sitting at each of its
endpoints, or fabricate a hidden anchor note when there is none. Adjacent
segments share coordinates, so a fabricated anchor must be reused rather
than duplicated.

HOW: One forward pass over the source list. Playable notes map 1:1 onto
target archetypes. For connectors (codes 9/16), the head is the first
unused slide start (5/12) at the start coordinates and the tail is the
first unused slide end (7/8/13/14) at the end coordinates. Endpoint
lookups go through per-key queues built once up front, so "first unused
in source order" costs O(1) instead of a rescan. Missing endpoints fall
back to an anchor registered per (role, AnchorKey).

RULES:
- Codes 0/1/2 (bootstrap) and 17 (timing hint) emit nothing here
- Any other unmapped code raises UnknownArchetypeError
- Each slide start/end is claimed by at most one connector (UsedSet)
- One synthesized anchor per AnchorKey per role; ids s-<idx> / e-<idx>
- Anchors are emitted immediately before the connector that created them
- Flick direction: 0 → -1, 1 → 1, else 0
- Connector ease:  0 → 1, 1 → -1, else 0 (not the same table!)
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from chart_converter.core.errors import MalformedSourceError, UnknownArchetypeError
from chart_converter.core.ir import (
    AnchorKey,
    Literal,
    Reference,
    SourceEntity,
    TargetEntity,
)

logger = logging.getLogger(__name__)

BOOTSTRAP_CODES = frozenset({0, 1, 2})
HINT_CODE = 17
CONNECTOR_CODES = frozenset({9, 16})
SLIDE_START_CODES = frozenset({5, 12})
SLIDE_END_CODES = frozenset({7, 8, 13, 14})

# code -> target archetype for entities that convert 1:1
NOTE_ARCHETYPES: Dict[int, str] = {
    3: "NormalTapNote",
    10: "CriticalTapNote",
    4: "NormalFlickNote",
    11: "CriticalFlickNote",
    5: "NormalSlideStartNote",
    12: "CriticalSlideStartNote",
    6: "NormalSlideTickNote",
    13: "CriticalSlideTickNote",
    7: "NormalSlideEndNote",
    14: "CriticalSlideEndNote",
    8: "NormalSlideEndFlickNote",
    15: "CriticalSlideEndFlickNote",
}

FLICK_CODES = frozenset({4, 11, 8, 15})

CONNECTOR_ARCHETYPES: Dict[int, str] = {
    9: "NormalSlideConnector",
    16: "CriticalSlideConnector",
}

HIDDEN_START_ARCHETYPE = "HiddenSlideStartNote"
HIDDEN_TAIL_ARCHETYPE = "HiddenSlideTickNote"

START_ROLE = "start"
TAIL_ROLE = "tail"


def convert_flick(code: Optional[float]) -> int:
    """Map a source flick direction code to the target direction value."""
    if code == 0:
        return -1
    if code == 1:
        return 1
    return 0


def convert_ease(code: Optional[float]) -> int:
    """Map a source ease code to the target connector ease value."""
    if code == 0:
        return 1
    if code == 1:
        return -1
    return 0


def format_ref(value: float) -> str:
    """Render a numeric source index as an entity identifier."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass
class Resolution:
    """Result of resolving one chart's source entities.

    RULES:
    - entities: primaries and anchors in emission order
    - used: source indices claimed as connector endpoints
    - anchors: (role, AnchorKey) -> synthesized anchor id
    """

    entities: List[TargetEntity] = field(default_factory=list)
    used: Set[int] = field(default_factory=set)
    anchors: Dict[Tuple[str, AnchorKey], str] = field(default_factory=dict)


class _EndpointIndex:
    """Queues of candidate endpoint indices keyed by (beat, lane, size)."""

    def __init__(
        self,
        entities: Sequence[SourceEntity],
        codes: frozenset,
        used: Set[int],
    ) -> None:
        self._queues: Dict[AnchorKey, Deque[int]] = defaultdict(deque)
        self._used = used
        for index, entity in enumerate(entities):
            if entity.archetype in codes:
                self._queues[_note_key(entity, index)].append(index)

    def claim(self, key: AnchorKey) -> Optional[int]:
        """Claim the first unused entity at key, in source order."""
        queue = self._queues.get(key)
        while queue:
            index = queue.popleft()
            if index not in self._used:
                self._used.add(index)
                return index
        return None


def _note_key(entity: SourceEntity, index: int) -> AnchorKey:
    if len(entity.values) < 3:
        raise MalformedSourceError(
            f"Entity {index} (archetype {entity.archetype}) has "
            f"{len(entity.values)} values, expected at least 3"
        )
    return entity.key


def _position_fields(key: AnchorKey) -> List[Literal]:
    return [
        Literal("#BEAT", key.beat),
        Literal("lane", key.lane),
        Literal("size", key.size),
    ]


def _convert_note(entity: SourceEntity, index: int) -> TargetEntity:
    data: List = _position_fields(_note_key(entity, index))
    if entity.archetype in FLICK_CODES:
        direction = entity.values[3] if len(entity.values) > 3 else None
        data.append(Literal("direction", convert_flick(direction)))
    return TargetEntity(
        archetype=NOTE_ARCHETYPES[entity.archetype],
        data=data,
        ref=str(index),
    )


class EntityResolver:
    """Single-use resolver holding the per-chart state of one forward pass."""

    def __init__(self, entities: Sequence[SourceEntity]) -> None:
        self._source = entities
        self._result = Resolution()
        self._starts = _EndpointIndex(entities, SLIDE_START_CODES, self._result.used)
        self._tails = _EndpointIndex(entities, SLIDE_END_CODES, self._result.used)

    def resolve(self) -> Resolution:
        out = self._result.entities
        for index, entity in enumerate(self._source):
            code = entity.archetype
            if code in BOOTSTRAP_CODES or code == HINT_CODE:
                continue
            if code in NOTE_ARCHETYPES:
                out.append(_convert_note(entity, index))
            elif code in CONNECTOR_CODES:
                out.append(self._convert_connector(entity, index))
            else:
                raise UnknownArchetypeError(code, index)
        return self._result

    def _convert_connector(self, entity: SourceEntity, index: int) -> TargetEntity:
        values = entity.values
        if len(values) < 6:
            raise MalformedSourceError(
                f"Connector {index} has {len(values)} values, expected at least 6"
            )
        start_key = AnchorKey(values[0], values[1], values[2])
        end_key = AnchorKey(values[3], values[4], values[5])

        head_index = self._starts.claim(start_key)
        if head_index is not None:
            head = str(head_index)
        else:
            head = self._anchor(START_ROLE, start_key, f"s-{index}", HIDDEN_START_ARCHETYPE)

        tail_index = self._tails.claim(end_key)
        if tail_index is not None:
            tail = str(tail_index)
        else:
            tail = self._anchor(TAIL_ROLE, end_key, f"e-{index}", HIDDEN_TAIL_ARCHETYPE)

        override = values[7] if len(values) > 7 else None
        start = format_ref(override) if override is not None else head
        ease_code = values[6] if len(values) > 6 else None

        return TargetEntity(
            archetype=CONNECTOR_ARCHETYPES[entity.archetype],
            data=[
                Reference("start", start),
                Reference("head", head),
                Reference("tail", tail),
                Literal("ease", convert_ease(ease_code)),
            ],
            ref=str(index),
        )

    def _anchor(self, role: str, key: AnchorKey, new_id: str, archetype: str) -> str:
        """Return the anchor id for (role, key), emitting it on first use."""
        existing = self._result.anchors.get((role, key))
        if existing is not None:
            return existing
        self._result.anchors[(role, key)] = new_id
        self._result.entities.append(
            TargetEntity(archetype=archetype, data=_position_fields(key), ref=new_id)
        )
        logger.debug("Synthesized %s %s at %s", archetype, new_id, tuple(key))
        return new_id


def resolve_entities(entities: Iterable[SourceEntity]) -> Resolution:
    """Resolve a chart's source entities into target entities.

    Args:
        entities: The chart's source entities, in document order.

    Returns:
        A Resolution with the emitted entities, the UsedSet, and the
        anchor map. Fresh state every call, so repeated calls on the same
        input produce identical output.

    Raises:
        UnknownArchetypeError: On any archetype code outside the table.
        MalformedSourceError: When a note or connector is missing values.
    """
    return EntityResolver(list(entities)).resolve()
