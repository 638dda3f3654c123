"""Prometheus exposition of collector measurements."""

import time
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

import structlog
from prometheus_client import CollectorRegistry as PrometheusRegistry
from prometheus_client import generate_latest
from prometheus_client.core import GaugeMetricFamily, Metric

from zoneinfo_collector.collectors.base import (
    CollectingSink,
    Measurement,
    ValueKind,
    build_fq_name,
)

if TYPE_CHECKING:
    from zoneinfo_collector.collectors.base import BaseCollector

logger = structlog.get_logger(__name__)

COUNTER_SUFFIX = "_total"


def measurement_families(measurements: Iterable[Measurement]) -> list[Metric]:
    """Group measurements into metric families, keeping first-seen order."""
    families: dict[str, Metric] = {}
    for m in measurements:
        family = families.get(m.name)
        if family is None:
            family_name = m.name
            if m.kind is ValueKind.COUNTER and family_name.endswith(COUNTER_SUFFIX):
                family_name = family_name[: -len(COUNTER_SUFFIX)]
            family = Metric(family_name, m.description, m.kind.value)
            families[m.name] = family
        family.add_sample(m.name, dict(m.labels), m.value)
    return list(families.values())


class StaticExporter:
    """Exposes a fixed list of measurements."""

    def __init__(self, measurements: list[Measurement]) -> None:
        self._measurements = measurements

    def collect(self) -> Iterator[Metric]:
        yield from measurement_families(self._measurements)

    def describe(self) -> list[Metric]:
        return []


class ScrapeExporter:
    """Runs every collector once per scrape.

    Each scrape also reports how long every collector took and whether its
    pass succeeded.
    """

    def __init__(self, collectors: dict[str, "BaseCollector"], namespace: str = "node") -> None:
        self._collectors = collectors
        self._namespace = namespace

    def collect(self) -> Iterator[Metric]:
        duration = GaugeMetricFamily(
            build_fq_name(self._namespace, "scrape", "collector_duration_seconds"),
            "Duration of a collector scrape.",
            labels=["collector"],
        )
        success = GaugeMetricFamily(
            build_fq_name(self._namespace, "scrape", "collector_success"),
            "Whether a collector succeeded.",
            labels=["collector"],
        )

        for name, collector in self._collectors.items():
            sink = CollectingSink()
            start = time.monotonic()
            ok = True
            try:
                collector.update(sink)
            except Exception as e:
                ok = False
                logger.error(
                    "scrape_collector_failed",
                    collector=name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            elapsed = time.monotonic() - start
            duration.add_metric([name], elapsed)
            success.add_metric([name], 1.0 if ok else 0.0)
            yield from measurement_families(sink.measurements)

        yield duration
        yield success

    def describe(self) -> list[Metric]:
        return []


def render_text(measurements: list[Measurement]) -> str:
    """Render measurements in the Prometheus text exposition format."""
    registry = PrometheusRegistry(auto_describe=False)
    registry.register(StaticExporter(measurements))
    return generate_latest(registry).decode("utf-8")


def build_scrape_registry(
    collectors: dict[str, "BaseCollector"], namespace: str = "node"
) -> PrometheusRegistry:
    """Build a registry that collects on every scrape."""
    registry = PrometheusRegistry(auto_describe=False)
    registry.register(ScrapeExporter(collectors, namespace=namespace))
    return registry
