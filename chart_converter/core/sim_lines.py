"""Sim-line generation: connect touchable notes that share a beat.

WHY: The target engine draws a line between notes that must be hit at the
same moment. The source format has no such entity, so every pair of
simultaneous touchable notes gets one.

HOW: Touchable notes are grouped by their #BEAT literal, preserving
emission order inside each group. Notes are then walked in emission order
and each is paired with the notes after it in its group. A symmetric
seen-set guards against a pair being emitted twice.

RULES:
- Touchable = Normal/Critical × Tap, Flick, SlideStart, SlideEnd, SlideEndFlick
- More than SIM_LINE_NOTE_LIMIT touchable notes → no sim-lines at all (logged)
- One SimLine per unordered pair: a = earlier note, b = later note
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, FrozenSet, List, Sequence, Set

from chart_converter.core.ir import Reference, TargetEntity

logger = logging.getLogger(__name__)

SIM_LINE_NOTE_LIMIT = 100_000
SIM_LINE_ARCHETYPE = "SimLine"

TOUCHABLE_ARCHETYPES = frozenset({
    "NormalTapNote",
    "NormalFlickNote",
    "NormalSlideStartNote",
    "NormalSlideEndNote",
    "NormalSlideEndFlickNote",
    "CriticalTapNote",
    "CriticalFlickNote",
    "CriticalSlideStartNote",
    "CriticalSlideEndNote",
    "CriticalSlideEndFlickNote",
})


def touchable_notes(entities: Sequence[TargetEntity]) -> List[TargetEntity]:
    return [e for e in entities if e.archetype in TOUCHABLE_ARCHETYPES]


def generate_sim_lines(
    entities: Sequence[TargetEntity],
    limit: int = SIM_LINE_NOTE_LIMIT,
) -> List[TargetEntity]:
    """Build SimLine entities for every pair of simultaneous touchable notes.

    Args:
        entities: All entities emitted so far; non-touchable ones are ignored.
        limit: Touchable-note ceiling above which generation is skipped.

    Returns:
        The SimLine entities, or an empty list when the ceiling is exceeded.
    """
    notes = [e for e in touchable_notes(entities) if e.ref is not None]
    if len(notes) > limit:
        logger.warning(
            "Too many touchable notes (%d > %d), skipping sim line generation",
            len(notes), limit,
        )
        return []
    logger.debug("Processing sim lines over %d touchable notes", len(notes))

    groups: Dict[float, List[TargetEntity]] = defaultdict(list)
    position: Dict[str, int] = {}
    for note in notes:
        beat = note.value_of("#BEAT")
        if beat is None:
            continue
        position[note.ref] = len(groups[beat])
        groups[beat].append(note)

    seen: Set[FrozenSet[str]] = set()
    lines: List[TargetEntity] = []
    for note in notes:
        beat = note.value_of("#BEAT")
        if beat is None:
            continue
        for other in groups[beat][position[note.ref] + 1:]:
            pair = frozenset((note.ref, other.ref))
            if len(pair) < 2 or pair in seen:
                continue
            seen.add(pair)
            lines.append(TargetEntity(
                archetype=SIM_LINE_ARCHETYPE,
                data=[Reference("a", note.ref), Reference("b", other.ref)],
            ))
    return lines
