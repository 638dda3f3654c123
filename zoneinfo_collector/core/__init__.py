"""Zoneinfo Collector Core Components."""

from zoneinfo_collector.core.config import CollectorConfig
from zoneinfo_collector.core.registry import CollectorRegistry, build_default_registry
from zoneinfo_collector.core.scheduler import CollectionScheduler
from zoneinfo_collector.core.transport import MetricTransport

__all__ = [
    "CollectorConfig",
    "CollectorRegistry",
    "CollectionScheduler",
    "MetricTransport",
    "build_default_registry",
]
