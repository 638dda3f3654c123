"""Zoneinfo collector.

Exposes NUMA node and memory zone statistics of the virtual memory subsystem
read from ``/proc/zoneinfo``.

Only the fields listed in the catalog are exported; unknown fields are skipped
so that newer kernels adding fields do not break collection.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from zoneinfo_collector.collectors.base import BaseCollector, BufferedSink, MetricSink
from zoneinfo_collector.collectors.zoneinfo.catalog import (
    FieldCatalog,
    MetricDescriptor,
    build_zoneinfo_catalog,
)
from zoneinfo_collector.collectors.zoneinfo.parser import (
    ParseSummary,
    ZoneInfoParser,
)
from zoneinfo_collector.core.errors import StreamOpenError

if TYPE_CHECKING:
    from zoneinfo_collector.core.config import CollectorConfig

logger = structlog.get_logger(__name__)

__all__ = [
    "FieldCatalog",
    "MetricDescriptor",
    "ParseSummary",
    "ZoneInfoCollector",
    "ZoneInfoParser",
    "build_zoneinfo_catalog",
    "new_zoneinfo_collector",
]


class ZoneInfoCollector(BaseCollector):
    """Collector for /proc/zoneinfo."""

    collector_name = "zoneinfo"
    collector_description = "NUMA node and memory zone statistics"

    def __init__(
        self,
        procfs_path: Path = Path("/proc"),
        namespace: str = "node",
        emission: str = "streaming",
        catalog: FieldCatalog | None = None,
    ) -> None:
        """Initialize the collector.

        Args:
            procfs_path: Mount point of procfs
            namespace: Metric namespace
            emission: "streaming" to deliver measurements as they are parsed,
                "buffered" to deliver them only after a successful pass
            catalog: Field catalog, built on demand when not given
        """
        self._path = Path(procfs_path) / "zoneinfo"
        self._emission = emission
        self._catalog = catalog if catalog is not None else build_zoneinfo_catalog()
        self._parser = ZoneInfoParser(
            self._catalog,
            namespace=namespace,
            source=str(self._path),
        )

    @property
    def source(self) -> str:
        return str(self._path)

    @property
    def catalog(self) -> FieldCatalog:
        return self._catalog

    def update(self, sink: MetricSink) -> None:
        """Parse the zoneinfo file once and push its measurements."""
        try:
            stream = self._path.open("r", encoding="utf-8", errors="replace")
        except OSError as e:
            raise StreamOpenError(str(self._path), e.strerror or str(e)) from e

        target: MetricSink = sink
        buffered: BufferedSink | None = None
        if self._emission == "buffered":
            buffered = BufferedSink(sink)
            target = buffered

        with stream:
            summary = self._parser.parse(stream, target)

        if buffered is not None:
            buffered.flush()

        logger.debug(
            "zoneinfo_pass_completed",
            source=self.source,
            lines=summary.lines,
            measurements=summary.measurements,
            skipped=summary.skipped,
        )

    def get_available_metrics(self) -> list[dict[str, Any]]:
        """Return list of metrics this collector can produce."""
        return [
            {
                "field": key,
                "name": self._parser.metric_name(descriptor.name),
                "description": descriptor.description,
                "type": descriptor.kind.value,
            }
            for key, descriptor in self._catalog.items()
        ]


def new_zoneinfo_collector(
    config: "CollectorConfig", settings: dict[str, Any] | None = None
) -> ZoneInfoCollector:
    """Create a zoneinfo collector from the application configuration.

    Args:
        config: Collector configuration
        settings: Per-collector settings; ``procfs_path`` overrides the
            global procfs mount point

    Returns:
        New collector instance
    """
    settings = settings or {}
    return ZoneInfoCollector(
        procfs_path=Path(settings.get("procfs_path", config.procfs_path)),
        namespace=config.namespace,
        emission=settings.get("emission", config.emission),
    )

