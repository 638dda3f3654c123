"""Push transport for pass reports.

Every scheduled pass becomes one report entry carrying its status
(``complete``, ``partial`` or ``failed``), the emission mode that produced it
and the measurements it delivered. Entries queue in memory and go out together
as one ingest request. Entries the server did not take are spooled to SQLite,
one row per pass, and replayed oldest first.
"""

import asyncio
import gzip
import json
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import aiosqlite
import httpx
import lz4.frame
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from zoneinfo_collector.core.config import CollectorConfig
    from zoneinfo_collector.core.scheduler import PassReport

logger = structlog.get_logger(__name__)

INGEST_PATH = "/api/v1/ingest"

SPOOL_SCHEMA = """
CREATE TABLE IF NOT EXISTS report_spool (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    collector TEXT NOT NULL,
    status TEXT NOT NULL,
    entry TEXT NOT NULL,
    spooled_at REAL NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0
)
"""


def _isoformat(ts: float) -> str:
    return datetime.fromtimestamp(ts, timezone.utc).isoformat()


class MetricTransport:
    """Sends pass reports to the server's ingest endpoint."""

    SPOOL_MAX_AGE = 86400  # seconds
    SPOOL_MAX_ATTEMPTS = 10
    REPLAY_BATCH = 50  # spooled entries per replay request

    def __init__(self, config: "CollectorConfig") -> None:
        self._config = config
        self._queue: list[dict[str, Any]] = []
        self._queue_lock = asyncio.Lock()
        self._flusher: asyncio.Task | None = None
        self._running = False
        self._spool_path = config.buffer_db_path
        self._client: httpx.AsyncClient | None = None

    def _headers(self) -> dict[str, str]:
        headers = {
            "X-Instance-ID": self._config.instance_id,
            "Content-Type": "application/json",
        }
        if self._config.compression != "none":
            headers["Content-Encoding"] = self._config.compression
        if self._config.api_key is not None:
            headers["Authorization"] = f"Bearer {self._config.api_key.get_secret_value()}"
        return headers

    async def start(self) -> None:
        """Open the HTTP client and spool, then start interval flushing.

        Raises:
            RuntimeError: If no server URL is configured
        """
        if not self._config.server_url:
            raise RuntimeError("server_url is not configured")

        self._client = httpx.AsyncClient(
            base_url=self._config.server_url,
            headers=self._headers(),
            timeout=httpx.Timeout(30.0, connect=10.0),
        )
        await self.open_spool()

        self._running = True
        self._flusher = asyncio.create_task(self._flush_every_interval())
        logger.info(
            "transport_started",
            server=self._config.server_url,
            compression=self._config.compression,
        )

    async def stop(self) -> None:
        """Stop interval flushing and send whatever is still queued."""
        self._running = False

        if self._flusher:
            self._flusher.cancel()
            try:
                await self._flusher
            except asyncio.CancelledError:
                pass

        await self.flush()

        if self._client:
            await self._client.aclose()

        logger.info("transport_stopped")

    async def open_spool(self) -> None:
        async with aiosqlite.connect(self._spool_path) as db:
            await db.execute(SPOOL_SCHEMA)
            await db.commit()

    @property
    def queued_reports(self) -> int:
        return len(self._queue)

    @property
    def queued_measurements(self) -> int:
        return sum(len(entry["measurements"]) for entry in self._queue)

    def report_entry(self, report: "PassReport") -> dict[str, Any]:
        """Wire form of one pass report."""
        return {
            "collector": report.collector,
            "status": report.status,
            "emission": self._config.emission,
            "error": report.error,
            "elapsed_seconds": round(report.elapsed, 6),
            "finished_at": _isoformat(report.finished_at),
            "measurements": [m.to_dict() for m in report.measurements],
        }

    async def enqueue(self, report: "PassReport") -> None:
        """Queue a pass report, sending the queue once it holds a full batch.

        Failed passes that delivered nothing are queued too, so the server
        sees the gap.
        """
        entry = self.report_entry(report)
        async with self._queue_lock:
            self._queue.append(entry)
            if self.queued_measurements >= self._config.batch_size:
                await self._send_queue()

    async def flush(self) -> None:
        """Send the queue now, then replay spooled entries."""
        async with self._queue_lock:
            await self._send_queue()
        await self._replay_spool()

    async def _flush_every_interval(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._config.flush_interval)
                await self.flush()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("interval_flush_failed", error=str(e))

    async def _send_queue(self) -> None:
        if not self._queue:
            return
        entries, self._queue = self._queue, []

        try:
            await self._post(self.encode(entries))
        except httpx.HTTPError as e:
            logger.warning(
                "report_send_failed",
                error=str(e),
                reports=len(entries),
            )
            await self._spool(entries)
            return

        logger.debug(
            "reports_sent",
            reports=len(entries),
            partial=sum(1 for entry in entries if entry["status"] != "complete"),
        )

    def encode(self, entries: list[dict[str, Any]]) -> bytes:
        """Serialize report entries into a request body.

        Args:
            entries: Report entries, as built by ``report_entry``

        Returns:
            JSON body, compressed as configured
        """
        body = json.dumps(
            {
                "instance_id": self._config.instance_id,
                "sent_at": _isoformat(time.time()),
                "reports": entries,
            }
        ).encode()

        if self._config.compression == "gzip":
            return gzip.compress(body)
        if self._config.compression == "lz4":
            return lz4.frame.compress(body)
        return body

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        reraise=True,
    )
    async def _post(self, body: bytes) -> None:
        if not self._client:
            raise RuntimeError("Transport not started")
        response = await self._client.post(INGEST_PATH, content=body)
        response.raise_for_status()

    async def _spool(self, entries: list[dict[str, Any]]) -> None:
        now = time.time()
        rows = [
            (entry["collector"], entry["status"], json.dumps(entry), now)
            for entry in entries
        ]
        try:
            async with aiosqlite.connect(self._spool_path) as db:
                await db.executemany(
                    "INSERT INTO report_spool (collector, status, entry, spooled_at)"
                    " VALUES (?, ?, ?, ?)",
                    rows,
                )
                await db.commit()
        except (aiosqlite.Error, OSError) as e:
            logger.error("report_spool_failed", error=str(e), reports=len(rows))
            return
        logger.info("reports_spooled", reports=len(rows))

    async def _replay_spool(self) -> None:
        """Resend spooled entries in one request; drop stale or hopeless ones."""
        try:
            async with aiosqlite.connect(self._spool_path) as db:
                await db.execute(
                    "DELETE FROM report_spool WHERE spooled_at < ? OR attempts >= ?",
                    (time.time() - self.SPOOL_MAX_AGE, self.SPOOL_MAX_ATTEMPTS),
                )
                cursor = await db.execute(
                    "SELECT id, entry FROM report_spool ORDER BY id LIMIT ?",
                    (self.REPLAY_BATCH,),
                )
                rows = await cursor.fetchall()
                if not rows:
                    await db.commit()
                    return

                ids = [(row_id,) for row_id, _ in rows]
                try:
                    await self._post(self.encode([json.loads(entry) for _, entry in rows]))
                except httpx.HTTPError as e:
                    logger.debug("spool_replay_failed", error=str(e), reports=len(rows))
                    await db.executemany(
                        "UPDATE report_spool SET attempts = attempts + 1 WHERE id = ?",
                        ids,
                    )
                else:
                    await db.executemany("DELETE FROM report_spool WHERE id = ?", ids)
                    logger.info("spool_replayed", reports=len(rows))
                await db.commit()
        except (aiosqlite.Error, OSError) as e:
            logger.error("spool_replay_error", error=str(e))

    async def spooled_count(self, status: str | None = None) -> int:
        """Number of spooled report entries, optionally with a given status."""
        query = "SELECT COUNT(*) FROM report_spool"
        params: tuple[Any, ...] = ()
        if status is not None:
            query += " WHERE status = ?"
            params = (status,)
        async with aiosqlite.connect(self._spool_path) as db:
            cursor = await db.execute(query, params)
            row = await cursor.fetchone()
            return row[0] if row else 0
