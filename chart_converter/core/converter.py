"""Full per-chart conversion: source entities → converted Chart.

WHY: The three core passes (reference resolution, hidden-tick attachment,
sim-lines) have to run in a fixed order over one chart, behind the fixed
bootstrap entities every target chart starts with. This module is the one
place that sequencing lives, so the async pipeline only deals in bytes.

HOW: convert_level_data runs the passes over already-parsed entities.
convert_payload wraps it with the gzip+JSON codec for the pipeline.

RULES:
- Output order: bootstrap, resolved entities, attachments, sim-lines
- Attachment searches connectors of the full source entity list
- Sim-lines see every touchable note emitted before them
- bgmOffset is always 0
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from chart_converter.core.attachment import attach_hidden_ticks
from chart_converter.core.ir import Chart, Literal, SourceEntity, TargetEntity
from chart_converter.core.level_data import decode_source, encode_chart
from chart_converter.core.resolver import resolve_entities
from chart_converter.core.sim_lines import generate_sim_lines

logger = logging.getLogger(__name__)

BOOTSTRAP_BPM = 60


def bootstrap_entities() -> List[TargetEntity]:
    """The four entities every converted chart starts with."""
    return [
        TargetEntity(archetype="Initialization"),
        TargetEntity(archetype="InputManager"),
        TargetEntity(archetype="Stage"),
        TargetEntity(
            archetype="#BPM_CHANGE",
            data=[Literal("#BEAT", 0), Literal("#BPM", BOOTSTRAP_BPM)],
        ),
    ]


def convert_level_data(name: str, source: Sequence[SourceEntity]) -> Chart:
    """Convert one chart's source entities into the target format.

    Args:
        name: Archive level name, carried onto the Chart.
        source: The chart's source entities in document order.

    Returns:
        The converted Chart.

    Raises:
        ConversionError: On any chart-fatal problem in the source.
    """
    entities = bootstrap_entities()

    resolution = resolve_entities(source)
    entities.extend(resolution.entities)
    logger.debug(
        "%s: %d entities resolved, %d anchors synthesized",
        name, len(resolution.entities), len(resolution.anchors),
    )

    attachments = attach_hidden_ticks(source)
    entities.extend(attachments)

    sim_lines = generate_sim_lines(entities)
    entities.extend(sim_lines)

    logger.debug(
        "%s: %d attachments, %d sim lines", name, len(attachments), len(sim_lines)
    )
    return Chart(name=name, bgm_offset=0, entities=entities)


def convert_payload(name: str, payload: bytes) -> bytes:
    """Decode a source payload, convert it, and encode the result."""
    source = decode_source(payload)
    logger.info("%s: loaded, %d entities", name, len(source))
    chart = convert_level_data(name, source)
    return encode_chart(chart)
