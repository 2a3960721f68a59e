"""Unit tests for hidden-tick attachment.

WHY: Each timing hint must land on the connector whose eased path passes
closest to it. Range filtering, curve evaluation, and the tie-break are
each easy to get subtly wrong.
"""

import pytest

from chart_converter.core.attachment import (
    ATTACHMENT_ARCHETYPE,
    attach_hidden_ticks,
    find_nearest_connector,
)
from chart_converter.core.errors import DegenerateIntervalError, UnknownEaseError
from chart_converter.core.ir import Literal, Reference, SourceEntity


def _connectors(source):
    return [(i, e) for i, e in enumerate(source) if e.archetype in (9, 16)]


class TestFindNearestConnector:
    def test_closest_path_wins(self, make_entities):
        source = make_entities([
            (9, [0, 10, 2, 4, 10, 2, 2]),
            (9, [0, 0, 2, 4, 8, 2, 2]),
        ])
        hint = SourceEntity(17, (2, 4, 2))
        # second connector's linear path is at lane 4 on beat 2
        assert find_nearest_connector(hint, _connectors(source)) == 1

    def test_ease_curve_is_applied(self, make_entities):
        source = make_entities([
            (9, [0, 0, 2, 4, 8, 2, 2]),
            (9, [0, 0, 2, 4, 8, 2, 0]),
        ])
        # easeIn at t=0.5 → 0.25 → lane 2; linear would be lane 4
        hint = SourceEntity(17, (2, 2, 2))
        assert find_nearest_connector(hint, _connectors(source)) == 1

    def test_size_counts_toward_distance(self, make_entities):
        source = make_entities([
            (9, [0, 4, 1, 4, 4, 1, 2]),
            (9, [0, 4, 3, 4, 4, 3, 2]),
        ])
        hint = SourceEntity(17, (1, 4, 3))
        assert find_nearest_connector(hint, _connectors(source)) == 1

    def test_tie_keeps_first_candidate(self, make_entities):
        source = make_entities([
            (9, [0, 2, 2, 4, 2, 2, 2]),
            (16, [0, 6, 2, 4, 6, 2, 2]),
        ])
        hint = SourceEntity(17, (1, 4, 2))
        assert find_nearest_connector(hint, _connectors(source)) == 0

    def test_range_is_inclusive(self, make_entities):
        source = make_entities([(9, [0, 0, 2, 4, 0, 2, 2])])
        assert find_nearest_connector(SourceEntity(17, (0, 0, 2)), _connectors(source)) == 0
        assert find_nearest_connector(SourceEntity(17, (4, 0, 2)), _connectors(source)) == 0

    def test_out_of_range_connectors_ignored(self, make_entities):
        source = make_entities([
            (9, [0, 3, 2, 1, 3, 2, 2]),
            (9, [1, 9, 2, 3, 9, 2, 2]),
        ])
        # first connector is closer in lane but ends before beat 2
        hint = SourceEntity(17, (2, 3, 2))
        assert find_nearest_connector(hint, _connectors(source)) == 1

    def test_no_candidate_returns_none(self, make_entities):
        source = make_entities([(9, [0, 0, 2, 4, 0, 2, 2])])
        assert find_nearest_connector(SourceEntity(17, (10, 0, 2)), _connectors(source)) is None

    def test_unknown_ease_raises(self, make_entities):
        source = make_entities([(9, [0, 0, 2, 4, 0, 2, 5])])
        with pytest.raises(UnknownEaseError):
            find_nearest_connector(SourceEntity(17, (1, 0, 2)), _connectors(source))

    def test_zero_width_candidate_raises(self, make_entities):
        source = make_entities([(9, [2, 0, 2, 2, 0, 2, 2])])
        with pytest.raises(DegenerateIntervalError):
            find_nearest_connector(SourceEntity(17, (2, 0, 2)), _connectors(source))

    def test_out_of_range_bad_ease_is_not_evaluated(self, make_entities):
        source = make_entities([
            (9, [5, 0, 2, 6, 0, 2, 9]),
            (9, [0, 0, 2, 4, 0, 2, 2]),
        ])
        assert find_nearest_connector(SourceEntity(17, (1, 0, 2)), _connectors(source)) == 1


class TestAttachHiddenTicks:
    def test_attachment_entity_shape(self, make_entities):
        source = make_entities([
            (5, [0, 0, 2]),
            (9, [0, 0, 2, 4, 8, 2, 2]),
            (17, [2, 4, 2]),
        ])
        attachments = attach_hidden_ticks(source)
        assert len(attachments) == 1
        tick = attachments[0]
        assert tick.archetype == ATTACHMENT_ARCHETYPE
        assert tick.data == [Literal("#BEAT", 2), Reference("attach", "1")]
        assert tick.ref is None

    def test_hint_without_connector_is_dropped(self, make_entities, caplog):
        source = make_entities([
            (9, [0, 0, 2, 4, 0, 2, 2]),
            (17, [1, 0, 2]),
            (17, [9, 0, 2]),
        ])
        with caplog.at_level("INFO", logger="chart_converter.core.attachment"):
            attachments = attach_hidden_ticks(source)
        assert len(attachments) == 1
        assert "No near slides" in caplog.text

    def test_output_follows_hint_order(self, make_entities):
        source = make_entities([
            (17, [3, 0, 2]),
            (9, [0, 0, 2, 4, 0, 2, 2]),
            (17, [1, 0, 2]),
        ])
        beats = [a.value_of("#BEAT") for a in attach_hidden_ticks(source)]
        assert beats == [3, 1]

    def test_no_hints_no_output(self, make_entities):
        source = make_entities([(9, [0, 0, 2, 4, 0, 2, 2])])
        assert attach_hidden_ticks(source) == []
