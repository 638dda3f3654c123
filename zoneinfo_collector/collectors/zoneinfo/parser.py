"""Single-pass parser for the /proc/zoneinfo line grammar."""

import re
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from zoneinfo_collector.collectors.base import (
    Emitter,
    Measurement,
    MetricSink,
    build_fq_name,
)
from zoneinfo_collector.collectors.zoneinfo.catalog import FieldCatalog
from zoneinfo_collector.collectors.zoneinfo.context import (
    LineKind,
    ParseContext,
    classify_line,
)
from zoneinfo_collector.core.errors import (
    NoDataFoundError,
    NumericParseError,
    StreamReadError,
)

logger = structlog.get_logger(__name__)

ZONEINFO_SUBSYSTEM = "zoneinfo"

# Decimal, exponent and inf/nan spellings only; no digit separators
NUMBER_RE = re.compile(
    r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?|[+-]?(inf|infinity|nan)",
    re.IGNORECASE | re.ASCII,
)


@dataclass
class ParseSummary:
    """Counters describing a completed pass."""

    lines: int = 0
    measurements: int = 0
    skipped: int = 0
    node: str = ""
    zone: str = ""


class ZoneInfoParser:
    """Turns zoneinfo report lines into measurements.

    The parser itself holds no per-pass state: every call to ``parse`` starts
    from a fresh ``ParseContext``, so one parser can serve concurrent passes.
    """

    def __init__(
        self,
        catalog: FieldCatalog,
        namespace: str = "node",
        source: str = "/proc/zoneinfo",
    ) -> None:
        """Initialize the parser.

        Args:
            catalog: Field catalog used to recognize data lines
            namespace: Namespace prepended to every metric name
            source: Name of the report, used in error messages
        """
        self._catalog = catalog
        self._namespace = namespace
        self._source = source

    @property
    def catalog(self) -> FieldCatalog:
        return self._catalog

    def metric_name(self, name: str) -> str:
        return build_fq_name(self._namespace, ZONEINFO_SUBSYSTEM, name)

    def parse(self, stream: Iterable[str | bytes], sink: MetricSink) -> ParseSummary:
        """Scan a report once, pushing measurements into the sink.

        Measurements are delivered as their lines are read. If the pass fails
        part way through, whatever was delivered before the failure stays with
        the sink.

        Args:
            stream: Report lines, text or bytes
            sink: Receiver for the measurements

        Returns:
            Summary of the pass

        Raises:
            NumericParseError: A recognized field has a non-numeric value
            StreamReadError: Reading from the stream failed, or the stream
                was closed to cancel the pass
            NoDataFoundError: No node/zone header was found in the report
        """
        context = ParseContext()
        emitter = Emitter(sink)
        summary = ParseSummary()

        for line in self._read_lines(stream):
            summary.lines += 1
            kind, match = classify_line(line)
            if kind is not LineKind.DATA:
                context.advance(kind, match)
                continue

            measurement = self._parse_data_line(line, context, summary.lines)
            if measurement is None:
                summary.skipped += 1
                continue
            emitter.emit(measurement)

        if not context.seen_node_zone:
            raise NoDataFoundError(self._source)

        summary.measurements = emitter.emitted
        summary.node = context.current_node
        summary.zone = context.current_zone
        return summary

    def _read_lines(self, stream: Iterable[str | bytes]) -> Iterable[str]:
        lines = iter(stream)
        while True:
            try:
                raw = next(lines)
            except StopIteration:
                return
            except (OSError, ValueError) as e:
                # ValueError: the stream was closed under us
                raise StreamReadError(f"error reading {self._source}: {e}") from e
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8", errors="replace")
            yield raw.strip()

    def _parse_data_line(
        self, line: str, context: ParseContext, line_number: int
    ) -> Measurement | None:
        parts = line.split()
        if len(parts) < 2:
            return None

        descriptor = self._catalog.lookup(parts[0])
        if descriptor is None:
            return None

        if not context.seen_node_zone:
            logger.debug(
                "zoneinfo_field_before_node_header",
                field=parts[0],
                line=line_number,
            )
            return None

        index = descriptor.value_token_index
        if index >= len(parts):
            raise NumericParseError(self._source, parts[0], None, line_number)
        token = parts[index]
        if not NUMBER_RE.fullmatch(token):
            raise NumericParseError(self._source, parts[0], token, line_number)
        value = float(token)

        return Measurement(
            name=self.metric_name(descriptor.name),
            kind=descriptor.kind,
            value=value,
            labels=context.labels(),
            description=descriptor.description,
        )
