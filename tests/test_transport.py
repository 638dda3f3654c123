"""Pass report transport: entries, request bodies and the SQLite spool."""

import asyncio
import gzip
import json

import httpx
import lz4.frame
import pytest

from zoneinfo_collector.collectors.base import Measurement, ValueKind
from zoneinfo_collector.core.config import CollectorConfig
from zoneinfo_collector.core.scheduler import PassReport
from zoneinfo_collector.core.transport import MetricTransport

MEASUREMENTS = [
    Measurement("node_zoneinfo_free_pages", ValueKind.GAUGE, 3965.0, {"node": "0", "zone": "DMA"}),
    Measurement("node_zoneinfo_numa_hit_total", ValueKind.COUNTER, 1.0, {"node": "0", "zone": "DMA"}),
]


def make_config(tmp_path, **overrides):
    values = {
        "instance_id": "db-01",
        "server_url": "https://metrics.example.com",
        "api_key": "secret",
        "buffer_db_path": tmp_path / "spool.db",
        "batch_size": 1000,
        "compression": "none",
    }
    values.update(overrides)
    return CollectorConfig(**values)


def attach_client(transport, handler):
    transport._client = httpx.AsyncClient(
        base_url="https://metrics.example.com",
        headers=transport._headers(),
        transport=httpx.MockTransport(handler),
    )


def complete_pass():
    return PassReport(collector="zoneinfo", measurements=list(MEASUREMENTS), elapsed=0.01)


def partial_pass():
    return PassReport(
        collector="zoneinfo",
        measurements=MEASUREMENTS[:1],
        error="NumericParseError: can't parse /proc/zoneinfo",
    )


@pytest.mark.parametrize(
    "compression,decode",
    [
        ("none", lambda data: data),
        ("gzip", gzip.decompress),
        ("lz4", lz4.frame.decompress),
    ],
)
def test_encode(tmp_path, compression, decode):
    transport = MetricTransport(make_config(tmp_path, compression=compression))
    entry = transport.report_entry(complete_pass())

    body = json.loads(decode(transport.encode([entry])))

    assert body["instance_id"] == "db-01"
    assert body["reports"] == [entry]
    if compression == "none":
        assert "Content-Encoding" not in transport._headers()
    else:
        assert transport._headers()["Content-Encoding"] == compression


def test_report_entry_carries_pass_outcome(tmp_path):
    transport = MetricTransport(make_config(tmp_path, emission="streaming"))

    entry = transport.report_entry(partial_pass())

    assert entry["status"] == "partial"
    assert entry["emission"] == "streaming"
    assert entry["error"].startswith("NumericParseError")
    assert [m["name"] for m in entry["measurements"]] == ["node_zoneinfo_free_pages"]

    entry = transport.report_entry(complete_pass())
    assert entry["status"] == "complete"
    assert entry["error"] is None
    assert entry["measurements"][1]["kind"] == "counter"


def test_failed_passes_are_queued(tmp_path):
    transport = MetricTransport(make_config(tmp_path, emission="buffered"))

    asyncio.run(transport.enqueue(PassReport(collector="zoneinfo", error="boom")))

    assert transport.queued_reports == 1
    assert transport.queued_measurements == 0
    assert transport._queue[0]["status"] == "failed"


def test_batch_size_triggers_send(tmp_path):
    transport = MetricTransport(make_config(tmp_path, batch_size=3))
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(202)

    async def scenario():
        await transport.open_spool()
        attach_client(transport, handler)
        await transport.enqueue(complete_pass())
        assert bodies == []
        await transport.enqueue(partial_pass())
        await transport._client.aclose()

    asyncio.run(scenario())

    assert len(bodies) == 1
    assert [r["status"] for r in bodies[0]["reports"]] == ["complete", "partial"]
    assert transport.queued_reports == 0


def test_rejected_reports_are_spooled_and_replayed(tmp_path):
    transport = MetricTransport(make_config(tmp_path))
    status = {"code": 503}
    bodies = []

    def handler(request):
        assert request.headers["Authorization"] == "Bearer secret"
        bodies.append(json.loads(request.content))
        return httpx.Response(status["code"])

    async def scenario():
        await transport.open_spool()
        attach_client(transport, handler)

        await transport.enqueue(complete_pass())
        await transport.enqueue(partial_pass())
        await transport.flush()
        assert transport.queued_reports == 0
        assert await transport.spooled_count() == 2
        assert await transport.spooled_count("partial") == 1

        status["code"] = 200
        await transport.flush()
        assert await transport.spooled_count() == 0
        await transport._client.aclose()

    asyncio.run(scenario())

    # queue send, failed replay, successful replay
    assert len(bodies) == 3
    assert [r["status"] for r in bodies[-1]["reports"]] == ["complete", "partial"]


def test_hopeless_entries_are_dropped(tmp_path):
    transport = MetricTransport(make_config(tmp_path))
    transport.SPOOL_MAX_ATTEMPTS = 2

    def handler(request):
        return httpx.Response(500)

    async def scenario():
        await transport.open_spool()
        attach_client(transport, handler)
        await transport.enqueue(complete_pass())
        await transport.flush()  # spooled, first replay fails
        await transport.flush()  # second replay fails
        assert await transport.spooled_count() == 1
        await transport.flush()  # over the attempt limit
        assert await transport.spooled_count() == 0
        await transport._client.aclose()

    asyncio.run(scenario())


def test_start_requires_server_url(tmp_path):
    transport = MetricTransport(make_config(tmp_path, server_url=None))
    with pytest.raises(RuntimeError):
        asyncio.run(transport.start())
