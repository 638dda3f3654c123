"""Field catalog for /proc/zoneinfo.

Maps the raw field key found at the start of a zoneinfo data line to the
metric it is exported as. The catalog is built once and never changes, so a
single instance can be shared by any number of concurrent passes.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from zoneinfo_collector.collectors.base import ValueKind


@dataclass(frozen=True)
class MetricDescriptor:
    """Describes the metric exported for one zoneinfo field."""

    name: str
    description: str
    kind: ValueKind
    value_token_index: int = 1


class FieldCatalog:
    """Read-only lookup table from field key to metric descriptor."""

    def __init__(self, descriptors: Mapping[str, MetricDescriptor]) -> None:
        self._descriptors = MappingProxyType(dict(descriptors))

    def lookup(self, key: str) -> MetricDescriptor | None:
        """Find the descriptor for a field key.

        Args:
            key: Raw field key, e.g. ``nr_free_pages``

        Returns:
            The descriptor, or None if the key is not exported
        """
        return self._descriptors.get(key)

    def keys(self) -> list[str]:
        return list(self._descriptors)

    def items(self) -> Iterator[tuple[str, MetricDescriptor]]:
        return iter(self._descriptors.items())

    def __contains__(self, key: object) -> bool:
        return key in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[str]:
        return iter(self._descriptors)


def _gauge(name: str, description: str) -> MetricDescriptor:
    return MetricDescriptor(name=name, description=description, kind=ValueKind.GAUGE)


def _counter(name: str, description: str) -> MetricDescriptor:
    return MetricDescriptor(name=name, description=description, kind=ValueKind.COUNTER)


def build_zoneinfo_catalog() -> FieldCatalog:
    """Build the catalog of zoneinfo fields exported as metrics."""
    return FieldCatalog(
        {
            # free pages and watermarks
            "nr_free_pages": _gauge(
                "free_pages", "Number of free pages in this node and zone"
            ),
            "min": _gauge("min_pages", "The min watermark of this node and zone"),
            "low": _gauge("low_pages", "The low watermark of this node and zone"),
            "high": _gauge("high_pages", "The high watermark of this node and zone"),
            "scanned": _gauge(
                "scanned_pages", "Number of scanned pages in this node and zone"
            ),
            "spanned": _gauge(
                "spanned_pages", "Number of spanned pages in this node and zone"
            ),
            "present": _gauge(
                "present_pages", "Number of present pages in this node and zone"
            ),
            "managed": _gauge(
                "managed_pages", "Number of managed pages in this node and zone"
            ),
            # anonymous pages
            "nr_active_anon": _gauge(
                "active_anon_pages",
                "Number of active anonymous pages in this node and zone",
            ),
            "nr_inactive_anon": _gauge(
                "inactive_anon_pages",
                "Number of inactive anonymous pages in this node and zone",
            ),
            "nr_isolated_anon": _gauge(
                "isolated_anon_pages",
                "Number of temporarily isolated pages from anonymous pages LRU "
                "in this node and zone",
            ),
            "nr_anon_pages": _gauge(
                "anon_pages", "Number of anonymous pages in this node and zone"
            ),
            "nr_anon_transparent_hugepages": _gauge(
                "anon_transparent_hugepages",
                "Number of anonymous transparent_hugepages in this node and zone",
            ),
            # file-backed pages
            "nr_active_file": _gauge(
                "active_file_pages",
                "Number of active pages with file-backing in this node and zone",
            ),
            "nr_inactive_file": _gauge(
                "inactive_file_pages",
                "Number of inactive pages with file-backing in this node and zone",
            ),
            "nr_isolated_file": _gauge(
                "isolated_file_pages",
                "Number of temporarily isolated pages from file-backing pages LRU "
                "in this node and zone",
            ),
            "nr_file_pages": _gauge(
                "file_pages",
                "Number of pages with file-backing in this node and zone",
            ),
            # slab
            "nr_slab_reclaimable": _gauge(
                "reclaimable_slab_pages",
                "Number of reclaimable slab pages in this node and zone",
            ),
            "nr_slab_unreclaimable": _gauge(
                "unreclaimable_slab_pages",
                "Number of unreclaimable slab pages in this node and zone",
            ),
            # lru, stack, dirty and writeback accounting
            "nr_mlock_stack": _gauge(
                "mlock_pages",
                "Number of mlock()ed pages found and moved off LRU in this node "
                "and zone",
            ),
            "nr_kernel_stack": _gauge(
                "kernel_stack_pages",
                "Number of kernel stack pages in this node and zone",
            ),
            "nr_mapped": _gauge(
                "mapped_pages", "Number of mapped pages in this node and zone"
            ),
            "nr_dirty": _gauge(
                "dirty_pages", "Number of dirty pages in this node and zone"
            ),
            "nr_writeback": _gauge(
                "writeback_pages", "Number of writeback pages in this node and zone"
            ),
            "nr_unevictable": _gauge(
                "unevictable_pages",
                "Number of unevictable pages in this node and zone",
            ),
            "nr_shmem": _gauge(
                "shmem_pages", "Number of shmem pages in this node and zone"
            ),
            # counters
            "nr_dirtied": _counter(
                "dirtied_pages_total", "Number of dirtied pages since boot"
            ),
            "nr_written": _counter(
                "written_pages_total", "Number of written pages since boot"
            ),
            # NUMA allocation counters
            "numa_hit": _counter(
                "numa_hit_total",
                "Number of NUMA hit allocations in this node and zone since boot",
            ),
            "numa_miss": _counter(
                "numa_miss_total",
                "Number of NUMA miss allocations in this node and zone since boot",
            ),
            "numa_foreign": _counter(
                "numa_foreign_total",
                "Number of NUMA foreign allocations in this node and zone since boot",
            ),
            "numa_interleave": _counter(
                "numa_interleave_total",
                "Number of NUMA interleave allocations in this node and zone "
                "since boot",
            ),
            "numa_local": _counter(
                "numa_local_total",
                "Number of NUMA local allocations in this node and zone since boot",
            ),
            "numa_other": _counter(
                "numa_other_total",
                "Number of NUMA other allocations in this node and zone since boot",
            ),
        }
    )
