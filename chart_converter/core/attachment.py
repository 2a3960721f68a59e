"""Attach orphan timing hints (archetype 17) to the nearest slide connector.

WHY: The source format scatters bare timing hints along slides. The target
engine needs each one tied to a concrete connector so it can be placed on
the slide path. The hint carries its own (beat, lane, size); the right
connector is the one whose eased path passes closest to that point.

HOW: For each hint, candidates are the connectors of the full source
list whose [startBeat, endBeat] contains the hint's beat. Each candidate's
path is evaluated at the hint's beat (inverse-lerp, ease, lerp) and scored
by L1 distance in (lane, size). The lowest score wins; ties go to the
first candidate in source order.

RULES:
- Unknown ease code on a candidate raises (chart-fatal)
- Zero-width candidate interval raises (chart-fatal)
- No candidate → hint dropped, logged, not an error
- Output: IgnoredSlideTickNote {#BEAT, attach → connector id}
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from chart_converter.core.errors import MalformedSourceError
from chart_converter.core.interpolate import ease, ease_kind, lerp, unlerp
from chart_converter.core.ir import Literal, Reference, SourceEntity, TargetEntity
from chart_converter.core.resolver import CONNECTOR_CODES, HINT_CODE

logger = logging.getLogger(__name__)

ATTACHMENT_ARCHETYPE = "IgnoredSlideTickNote"


def _connector_position(connector: SourceEntity, beat: float) -> Tuple[float, float]:
    """Interpolated (lane, size) of a connector's path at a beat."""
    start_beat, start_lane, start_size, end_beat, end_lane, end_size = connector.values[:6]
    ease_code = connector.values[6] if len(connector.values) > 6 else None
    progress = ease(unlerp(start_beat, end_beat, beat), ease_kind(ease_code))
    return lerp(start_lane, end_lane, progress), lerp(start_size, end_size, progress)


def find_nearest_connector(
    hint: SourceEntity,
    connectors: Sequence[Tuple[int, SourceEntity]],
) -> Optional[int]:
    """Return the source index of the connector nearest to a hint, or None.

    Args:
        hint: A code-17 source entity, values [beat, lane, size].
        connectors: (source index, entity) pairs of code 9/16 entities,
            in source order.
    """
    if len(hint.values) < 3:
        raise MalformedSourceError(
            f"Timing hint has {len(hint.values)} values, expected at least 3"
        )
    beat, lane, size = hint.values[:3]

    best_index: Optional[int] = None
    best_distance = 0.0
    for index, connector in connectors:
        start_beat, end_beat = connector.values[0], connector.values[3]
        if not (start_beat <= beat <= end_beat):
            continue
        c_lane, c_size = _connector_position(connector, beat)
        distance = abs(c_lane - lane) + abs(c_size - size)
        # strict < keeps the first candidate on ties
        if best_index is None or distance < best_distance:
            best_index = index
            best_distance = distance
    return best_index


def attach_hidden_ticks(source: Sequence[SourceEntity]) -> List[TargetEntity]:
    """Build attachment entities for every timing hint in a chart.

    Args:
        source: The chart's full, unfiltered source entity list.

    Returns:
        One IgnoredSlideTickNote per hint that found a connector, in the
        order the hints appear in the source.
    """
    connectors = [
        (i, e) for i, e in enumerate(source)
        if e.archetype in CONNECTOR_CODES and len(e.values) >= 6
    ]

    attachments: List[TargetEntity] = []
    for hint in source:
        if hint.archetype != HINT_CODE:
            continue
        index = find_nearest_connector(hint, connectors)
        if index is None:
            logger.info("No near slides for hint at beat %s, dropping", hint.values[0])
            continue
        attachments.append(TargetEntity(
            archetype=ATTACHMENT_ARCHETYPE,
            data=[
                Literal("#BEAT", hint.values[0]),
                Reference("attach", str(index)),
            ],
        ))
    return attachments
