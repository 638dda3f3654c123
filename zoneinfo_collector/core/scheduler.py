"""Collection scheduling for metrics gathering."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from zoneinfo_collector.collectors.base import CollectingSink, Measurement

if TYPE_CHECKING:
    from zoneinfo_collector.collectors.base import BaseCollector

logger = structlog.get_logger(__name__)


@dataclass
class PassReport:
    """Outcome of one scheduled pass.

    A pass that failed in streaming mode still carries the measurements
    delivered before the failure. In buffered mode a failed pass carries none.
    """

    collector: str
    measurements: list[Measurement] = field(default_factory=list)
    error: str | None = None
    elapsed: float = 0.0
    finished_at: float = field(default_factory=time.time)

    @property
    def complete(self) -> bool:
        return self.error is None

    @property
    def status(self) -> str:
        if self.complete:
            return "complete"
        return "partial" if self.measurements else "failed"


class CollectionScheduler:
    """Runs collection passes on a fixed interval."""

    COLLECTION_TIMEOUT = 30.0  # seconds - max time for a single pass
    HEALTH_THRESHOLD = 300  # seconds - max time since last collection for healthy status

    def __init__(
        self,
        on_pass_completed: Callable[[PassReport], None] | None = None,
        poll_interval: int = 15,
    ) -> None:
        """Initialize the scheduler.

        Args:
            on_pass_completed: Callback receiving the report of every pass
                that finished, successfully or not, within the timeout
            poll_interval: Seconds between passes
        """
        self._scheduler = AsyncIOScheduler()
        self._on_pass_completed = on_pass_completed
        self._poll_interval = poll_interval
        self._collection_tasks: dict[str, str] = {}  # collector name -> job_id
        self._running = False

        # Health tracking
        self._last_collection_time: float = 0.0
        self._last_successful_collection: float = 0.0
        self._consecutive_failures: int = 0

    def start(self) -> None:
        """Start the scheduler."""
        if not self._running:
            self._scheduler.start()
            self._running = True
            logger.info("scheduler_started", poll_interval=self._poll_interval)

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=True)
            self._running = False
            logger.info("scheduler_stopped")

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def is_healthy(self) -> bool:
        """Check if scheduler is healthy.

        Returns:
            True if scheduler is running and collecting successfully
        """
        # If no collectors scheduled, consider healthy
        if not self._collection_tasks:
            return True

        if not self._running:
            return False

        # If never collected successfully, healthy if just started
        if self._last_successful_collection == 0.0:
            return self._consecutive_failures < 5

        elapsed = time.time() - self._last_successful_collection
        return elapsed < self.HEALTH_THRESHOLD and self._consecutive_failures < 5

    def schedule_collector(self, name: str, collector: "BaseCollector") -> str:
        """Schedule periodic passes for a collector.

        Args:
            name: Collector name
            collector: Collector instance

        Returns:
            Job ID for the scheduled task
        """
        if name in self._collection_tasks:
            self.unschedule_collector(name)

        job = self._scheduler.add_job(
            self._collect_metrics,
            trigger=IntervalTrigger(seconds=self._poll_interval),
            args=[name, collector],
            id=f"collect_{name}",
            name=f"Collect {name}",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=max(self._poll_interval // 2, 1),
        )

        self._collection_tasks[name] = job.id
        logger.info(
            "collector_scheduled",
            collector=name,
            source=collector.source,
            interval=self._poll_interval,
        )

        return job.id

    def unschedule_collector(self, name: str) -> None:
        """Remove scheduled passes for a collector."""
        if name in self._collection_tasks:
            job_id = self._collection_tasks.pop(name)
            job = self._scheduler.get_job(job_id)
            if job is not None:
                job.remove()
            logger.info("collector_unscheduled", collector=name)

    async def _collect_metrics(self, name: str, collector: "BaseCollector") -> None:
        """Execute one pass with timeout.

        Whatever reached the sink before a failure is still reported. A pass
        that times out is not reported at all: its worker thread may still be
        writing to the sink.

        Args:
            name: Collector name
            collector: Collector instance
        """
        start_time = time.monotonic()
        self._last_collection_time = time.time()
        sink = CollectingSink()
        error: str | None = None

        try:
            logger.debug("collection_started", collector=name)

            await asyncio.wait_for(
                asyncio.to_thread(collector.update, sink),
                timeout=self.COLLECTION_TIMEOUT,
            )

            logger.info(
                "collection_completed",
                collector=name,
                metric_count=len(sink),
                elapsed_seconds=time.monotonic() - start_time,
            )

            self._last_successful_collection = time.time()
            self._consecutive_failures = 0

        except asyncio.TimeoutError:
            self._consecutive_failures += 1
            logger.error(
                "collection_timeout",
                collector=name,
                timeout_seconds=self.COLLECTION_TIMEOUT,
                elapsed_seconds=time.monotonic() - start_time,
                consecutive_failures=self._consecutive_failures,
            )
            return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            self._consecutive_failures += 1
            logger.error(
                "collection_failed",
                collector=name,
                error=str(e),
                error_type=type(e).__name__,
                partial_metric_count=len(sink),
                elapsed_seconds=time.monotonic() - start_time,
                consecutive_failures=self._consecutive_failures,
            )

        if self._on_pass_completed:
            self._on_pass_completed(
                PassReport(
                    collector=name,
                    measurements=list(sink.measurements),
                    error=error,
                    elapsed=time.monotonic() - start_time,
                )
            )

    async def collect_now(self, collector: "BaseCollector") -> list["Measurement"]:
        """Immediately run one pass (bypass scheduler).

        Args:
            collector: Collector instance

        Returns:
            List of collected measurements

        Raises:
            CollectorError: If the pass fails
        """
        sink = CollectingSink()
        await asyncio.to_thread(collector.update, sink)
        return sink.measurements

    def get_scheduled_collectors(self) -> list[str]:
        """Get list of collector names with scheduled passes."""
        return list(self._collection_tasks.keys())

    def get_job_info(self, name: str) -> dict | None:
        """Get information about a scheduled job.

        Args:
            name: Collector name

        Returns:
            Job information or None if not found
        """
        if name not in self._collection_tasks:
            return None

        job = self._scheduler.get_job(self._collection_tasks[name])
        if job is None:
            return None

        next_run = getattr(job, "next_run_time", None)
        return {
            "job_id": job.id,
            "name": job.name,
            "next_run": next_run.isoformat() if next_run else None,
        }
