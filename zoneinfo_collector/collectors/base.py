"""Base collector interface, measurement types and sinks."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class ValueKind(str, Enum):
    """How a measurement's value evolves over time."""

    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True)
class Measurement:
    """A single labeled measurement produced by a collector."""

    name: str
    kind: ValueKind
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result = {
            "name": self.name,
            "kind": self.kind.value,
            "value": self.value,
            "labels": dict(self.labels),
        }
        if self.description:
            result["description"] = self.description
        return result


@runtime_checkable
class MetricSink(Protocol):
    """Receiver of measurements pushed by a collector."""

    def observe(
        self,
        name: str,
        kind: ValueKind,
        value: float,
        labels: dict[str, str],
        description: str = "",
    ) -> None:
        ...


class CollectingSink:
    """Sink that keeps every observed measurement in arrival order."""

    def __init__(self) -> None:
        self.measurements: list[Measurement] = []

    def observe(
        self,
        name: str,
        kind: ValueKind,
        value: float,
        labels: dict[str, str],
        description: str = "",
    ) -> None:
        self.measurements.append(
            Measurement(
                name=name,
                kind=kind,
                value=value,
                labels=dict(labels),
                description=description,
            )
        )

    def __len__(self) -> int:
        return len(self.measurements)


class BufferedSink:
    """Sink that holds measurements back until the pass is known to be good.

    Nothing reaches the wrapped sink until ``flush`` is called, so a pass that
    fails part way through can simply be dropped with ``discard``.
    """

    def __init__(self, target: MetricSink) -> None:
        self._target = target
        self._pending: list[Measurement] = []

    def observe(
        self,
        name: str,
        kind: ValueKind,
        value: float,
        labels: dict[str, str],
        description: str = "",
    ) -> None:
        self._pending.append(
            Measurement(
                name=name,
                kind=kind,
                value=value,
                labels=dict(labels),
                description=description,
            )
        )

    @property
    def pending(self) -> int:
        return len(self._pending)

    def flush(self) -> int:
        """Forward all held measurements to the wrapped sink.

        Returns:
            Number of measurements forwarded
        """
        emitter = Emitter(self._target)
        pending, self._pending = self._pending, []
        for measurement in pending:
            emitter.emit(measurement)
        return len(pending)

    def discard(self) -> None:
        self._pending.clear()


class Emitter:
    """Hands constructed measurements to a sink, one at a time."""

    def __init__(self, sink: MetricSink) -> None:
        self._sink = sink
        self.emitted = 0

    def emit(self, measurement: Measurement) -> None:
        self._sink.observe(
            measurement.name,
            measurement.kind,
            measurement.value,
            dict(measurement.labels),
            description=measurement.description,
        )
        self.emitted += 1


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join metric name parts with underscores, skipping empty ones.

    Args:
        namespace: Metric namespace, e.g. ``node``
        subsystem: Collector subsystem, e.g. ``zoneinfo``
        name: Metric name within the subsystem

    Returns:
        Fully qualified metric name, or an empty string if ``name`` is empty
    """
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass
class CollectorMetadata:
    """Metadata about a collector."""

    name: str
    description: str
    source: str


class BaseCollector(ABC):
    """Abstract base class for all collectors.

    A collector performs one pass over its source per ``update`` call and
    pushes every measurement it finds into the supplied sink.
    """

    # Class attributes - override in subclasses
    collector_name: str = "base"
    collector_description: str = ""

    @property
    def source(self) -> str:
        """Human readable name of the data source."""
        return ""

    @property
    def metadata(self) -> CollectorMetadata:
        """Get collector metadata."""
        return CollectorMetadata(
            name=self.collector_name,
            description=self.collector_description,
            source=self.source,
        )

    @abstractmethod
    def update(self, sink: MetricSink) -> None:
        """Run one collection pass.

        Args:
            sink: Receiver for the measurements found during the pass

        Raises:
            CollectorError: If the pass could not be completed
        """
        ...

    def get_available_metrics(self) -> list[dict[str, Any]]:
        """Return list of metrics this collector can produce.

        Override to provide metric documentation.

        Returns:
            List of metric definitions
        """
        return []
