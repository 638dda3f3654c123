"""Node/zone context tracking for a zoneinfo pass."""

import re
from dataclasses import dataclass
from enum import Enum

# Node 0, zone      DMA
NODE_ZONE_RE = re.compile(r"Node (\d+), zone\s+(\w+)")
PER_NODE_MARKER = "per-node stats"
PAGES_FREE_MARKER = "pages free"

UNKNOWN = "unknown"


class SectionState(Enum):
    """Where in the report the scanner currently is."""

    SEEKING = "seeking"
    IN_ZONE = "in_zone"
    IN_PER_NODE_STATS = "in_per_node_stats"


class LineKind(Enum):
    """Structural role of a (stripped) report line."""

    NODE_ZONE = "node_zone"
    PER_NODE = "per_node"
    PAGES_FREE = "pages_free"
    DATA = "data"


def classify_line(line: str) -> tuple[LineKind, re.Match[str] | None]:
    """Recognize marker lines, in order of precedence.

    Args:
        line: Report line with surrounding whitespace removed

    Returns:
        The line kind, plus the regex match for node/zone markers
    """
    match = NODE_ZONE_RE.search(line)
    if match:
        return LineKind.NODE_ZONE, match
    if line.startswith(PER_NODE_MARKER):
        return LineKind.PER_NODE, None
    if line.startswith(PAGES_FREE_MARKER):
        return LineKind.PAGES_FREE, None
    return LineKind.DATA, None


def next_state(state: SectionState, kind: LineKind) -> SectionState:
    """Transition function of the section state machine.

    Section markers seen before the first node/zone header leave the scanner
    in SEEKING, since they cannot be attributed to any node.
    """
    if kind is LineKind.NODE_ZONE:
        return SectionState.IN_ZONE
    if state is SectionState.SEEKING:
        return state
    if kind is LineKind.PER_NODE:
        return SectionState.IN_PER_NODE_STATS
    if kind is LineKind.PAGES_FREE:
        return SectionState.IN_ZONE
    return state


@dataclass
class ParseContext:
    """Mutable per-pass view of the current node, zone and section."""

    current_node: str = UNKNOWN
    current_zone: str = UNKNOWN
    state: SectionState = SectionState.SEEKING

    @property
    def in_per_node_section(self) -> bool:
        return self.state is SectionState.IN_PER_NODE_STATS

    @property
    def seen_node_zone(self) -> bool:
        return self.state is not SectionState.SEEKING

    def advance(self, kind: LineKind, match: re.Match[str] | None = None) -> None:
        """Apply a marker line to the context."""
        if kind is LineKind.NODE_ZONE and match is not None:
            self.current_node = match.group(1)
            self.current_zone = match.group(2).strip()
        self.state = next_state(self.state, kind)

    def labels(self) -> dict[str, str]:
        """Labels for a measurement taken in the current section."""
        if self.state is SectionState.IN_PER_NODE_STATS:
            return {"node": self.current_node}
        return {"node": self.current_node, "zone": self.current_zone}
