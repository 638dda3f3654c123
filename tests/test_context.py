"""Section state machine and line classification."""

import pytest

from zoneinfo_collector.collectors.zoneinfo.context import (
    UNKNOWN,
    LineKind,
    ParseContext,
    SectionState,
    classify_line,
    next_state,
)


@pytest.mark.parametrize(
    "line,kind",
    [
        ("Node 0, zone      DMA", LineKind.NODE_ZONE),
        ("Node 12, zone   Normal", LineKind.NODE_ZONE),
        ("per-node stats", LineKind.PER_NODE),
        ("pages free     3965", LineKind.PAGES_FREE),
        ("nr_free_pages 3965", LineKind.DATA),
        ("min      3", LineKind.DATA),
        ("protection: (0, 2801, 15831)", LineKind.DATA),
        ("", LineKind.DATA),
    ],
)
def test_classify_line(line, kind):
    assert classify_line(line)[0] is kind


def test_node_zone_match_groups():
    kind, match = classify_line("Node 1, zone    DMA32")
    assert kind is LineKind.NODE_ZONE
    assert match.group(1) == "1"
    assert match.group(2) == "DMA32"


S = SectionState
K = LineKind


@pytest.mark.parametrize(
    "state,kind,expected",
    [
        (S.SEEKING, K.NODE_ZONE, S.IN_ZONE),
        (S.IN_ZONE, K.NODE_ZONE, S.IN_ZONE),
        (S.IN_PER_NODE_STATS, K.NODE_ZONE, S.IN_ZONE),
        (S.IN_ZONE, K.PER_NODE, S.IN_PER_NODE_STATS),
        (S.IN_PER_NODE_STATS, K.PER_NODE, S.IN_PER_NODE_STATS),
        (S.IN_PER_NODE_STATS, K.PAGES_FREE, S.IN_ZONE),
        (S.IN_ZONE, K.PAGES_FREE, S.IN_ZONE),
        (S.SEEKING, K.PER_NODE, S.SEEKING),
        (S.SEEKING, K.PAGES_FREE, S.SEEKING),
        (S.IN_ZONE, K.DATA, S.IN_ZONE),
        (S.IN_PER_NODE_STATS, K.DATA, S.IN_PER_NODE_STATS),
    ],
)
def test_next_state(state, kind, expected):
    assert next_state(state, kind) is expected


def test_initial_context():
    context = ParseContext()
    assert context.state is SectionState.SEEKING
    assert context.current_node == UNKNOWN
    assert context.current_zone == UNKNOWN
    assert not context.seen_node_zone


def test_labels_follow_section():
    context = ParseContext()
    context.advance(*classify_line("Node 0, zone      DMA"))
    assert context.labels() == {"node": "0", "zone": "DMA"}

    context.advance(*classify_line("per-node stats"))
    assert context.in_per_node_section
    assert context.labels() == {"node": "0"}

    context.advance(*classify_line("pages free     3965"))
    assert not context.in_per_node_section
    assert context.labels() == {"node": "0", "zone": "DMA"}


def test_new_block_leaves_per_node_section():
    context = ParseContext()
    context.advance(*classify_line("Node 0, zone      DMA"))
    context.advance(*classify_line("per-node stats"))
    context.advance(*classify_line("Node 1, zone   Normal"))
    assert context.state is SectionState.IN_ZONE
    assert context.labels() == {"node": "1", "zone": "Normal"}
