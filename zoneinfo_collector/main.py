"""Zoneinfo Collector - Main entry point."""

import asyncio
import signal
import time
from pathlib import Path

import structlog
import typer
from prometheus_client import start_http_server

from zoneinfo_collector.collectors.base import BaseCollector, CollectingSink
from zoneinfo_collector.collectors.zoneinfo import ZoneInfoCollector
from zoneinfo_collector.core.config import CollectorConfig
from zoneinfo_collector.core.errors import CollectorError
from zoneinfo_collector.core.exposition import build_scrape_registry, render_text
from zoneinfo_collector.core.registry import CollectorRegistry, build_default_registry
from zoneinfo_collector.core.scheduler import CollectionScheduler, PassReport
from zoneinfo_collector.core.transport import MetricTransport

app = typer.Typer(
    name="zoneinfo-collector",
    help="Zoneinfo Collector - NUMA node and memory zone metrics agent",
)

logger = structlog.get_logger(__name__)


class Collector:
    """Main collector application."""

    def __init__(
        self,
        config: CollectorConfig,
        registry: CollectorRegistry | None = None,
    ) -> None:
        self.config = config
        self.registry = registry or build_default_registry()
        self.scheduler = CollectionScheduler(
            on_pass_completed=self._on_pass,
            poll_interval=config.poll_interval,
        )
        self.transport: MetricTransport | None = None
        if config.push_enabled:
            self.transport = MetricTransport(config)
        self.collectors: dict[str, BaseCollector] = {}
        self._shutdown_event = asyncio.Event()
        self._pending_sends: set[asyncio.Task] = set()
        self._running = False
        self._last_activity: float = time.time()

    def _on_pass(self, report: PassReport) -> None:
        """Callback when a scheduled pass finished."""
        self._last_activity = time.time()

        if self.transport is None:
            for m in report.measurements:
                logger.info(
                    "measurement",
                    collector=report.collector,
                    name=m.name,
                    kind=m.kind.value,
                    value=m.value,
                    labels=m.labels,
                )
            if not report.complete:
                logger.warning(
                    "pass_incomplete",
                    collector=report.collector,
                    status=report.status,
                    delivered=len(report.measurements),
                )
            return

        task = asyncio.create_task(self.transport.enqueue(report))
        self._pending_sends.add(task)
        task.add_done_callback(self._pending_sends.discard)

    def health_check(self) -> dict:
        """Return health status for external health checks."""
        scheduler_ok = self.scheduler.is_healthy()
        return {
            "healthy": self._running and scheduler_ok,
            "running": self._running,
            "last_activity_seconds_ago": int(time.time() - self._last_activity),
            "scheduler_ok": scheduler_ok,
            "collectors": list(self.collectors),
        }

    async def start(self) -> None:
        """Start the collector."""
        self._running = True
        self._last_activity = time.time()

        logger.info(
            "collector_starting",
            instance_id=self.config.instance_id,
            mode="push" if self.transport else "log",
            emission=self.config.emission,
        )

        self.collectors = self.registry.create_enabled(self.config)
        if not self.collectors:
            logger.warning(
                "no_collectors_enabled",
                registered=self.registry.names(),
                message="Nothing to collect. Check the collectors section of the config.",
            )

        if self.transport:
            await self.transport.start()

        for name, collector in self.collectors.items():
            self.scheduler.schedule_collector(name, collector)
        self.scheduler.start()

        logger.info(
            "collector_started",
            scheduled_collectors=self.scheduler.get_scheduled_collectors(),
        )

    async def stop(self) -> None:
        """Stop the collector gracefully."""
        logger.info("collector_stopping")
        self._running = False

        self.scheduler.stop()

        if self._pending_sends:
            await asyncio.gather(*self._pending_sends, return_exceptions=True)

        if self.transport:
            await self.transport.stop()

        logger.info("collector_stopped")

    async def run(self) -> None:
        """Run the collector until shutdown signal."""
        await self.start()

        await self._shutdown_event.wait()

        await self.stop()

    def signal_shutdown(self) -> None:
        """Signal the collector to shut down."""
        self._shutdown_event.set()


def setup_logging(log_level: str, log_format: str) -> None:
    """Configure structured logging."""
    import logging

    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
    }
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
            if log_format == "console"
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            level_map.get(log_level.upper(), logging.INFO)
        ),
    )


def load_config(config_file: Path | None) -> CollectorConfig:
    """Load configuration from a file, or from the environment alone."""
    if config_file is None:
        return CollectorConfig()
    return CollectorConfig.from_file(config_file)


@app.command()
def run(
    config_file: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        "-l",
        help="Logging level",
    ),
    log_format: str = typer.Option(
        "console",
        "--log-format",
        help="Log format: console or json",
    ),
) -> None:
    """Run the collector agent on a schedule."""
    setup_logging(log_level, log_format)

    try:
        config = load_config(config_file)
    except FileNotFoundError:
        logger.error("config_file_not_found", path=str(config_file))
        raise typer.Exit(1)
    except Exception as e:
        logger.error("config_load_error", error=str(e))
        raise typer.Exit(1)

    collector = Collector(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, collector.signal_shutdown)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        loop.run_until_complete(collector.run())
    except KeyboardInterrupt:
        collector.signal_shutdown()
        loop.run_until_complete(collector.stop())
    finally:
        loop.close()


@app.command()
def serve(
    config_file: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    port: int = typer.Option(None, "--port", "-p", help="Port to listen on"),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Logging level"),
) -> None:
    """Expose metrics over HTTP, collecting on every scrape."""
    setup_logging(log_level, "console")

    try:
        config = load_config(config_file)
    except Exception as e:
        logger.error("config_load_error", error=str(e))
        raise typer.Exit(1)

    collectors = build_default_registry().create_enabled(config)
    registry = build_scrape_registry(collectors, namespace=config.namespace)
    listen_port = port or config.listen_port

    server, thread = start_http_server(
        listen_port, addr=config.listen_address, registry=registry
    )
    logger.info(
        "exposition_started",
        address=config.listen_address,
        port=listen_port,
        collectors=list(collectors),
    )

    try:
        while thread.is_alive():
            thread.join(timeout=1.0)
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()
        logger.info("exposition_stopped")


@app.command()
def collect(
    procfs: Path = typer.Option(
        Path("/proc"),
        "--procfs",
        help="procfs mountpoint",
    ),
    namespace: str = typer.Option("node", "--namespace", help="Metric namespace"),
    buffered: bool = typer.Option(
        False,
        "--buffered",
        help="Only output measurements if the whole pass succeeds",
    ),
) -> None:
    """Run a single zoneinfo pass and print the measurements."""
    setup_logging("WARNING", "console")

    collector = ZoneInfoCollector(
        procfs_path=procfs,
        namespace=namespace,
        emission="buffered" if buffered else "streaming",
    )
    sink = CollectingSink()
    failed = False
    try:
        collector.update(sink)
    except CollectorError as e:
        typer.echo(f"Collection error: {e}", err=True)
        failed = True

    if sink.measurements:
        typer.echo(render_text(sink.measurements), nl=False)
    if failed:
        raise typer.Exit(1)


@app.command()
def fields(
    namespace: str = typer.Option("node", "--namespace", help="Metric namespace"),
) -> None:
    """List the zoneinfo fields exported as metrics."""
    collector = ZoneInfoCollector(namespace=namespace)

    typer.echo(f"Exported fields ({len(collector.catalog)}):")
    for metric in collector.get_available_metrics():
        typer.echo(f"  {metric['field']} -> {metric['name']} ({metric['type']})")
        typer.echo(f"    {metric['description']}")


@app.command()
def collectors() -> None:
    """List available collectors."""
    registry = build_default_registry()

    typer.echo("Available collectors:")
    for name in registry.names():
        state = "enabled" if registry.is_default_enabled(name) else "disabled"
        typer.echo(f"  {name} (default: {state})")


@app.command()
def validate(
    config_file: Path = typer.Argument(..., help="Configuration file to validate"),
) -> None:
    """Validate a configuration file."""
    try:
        config = CollectorConfig.from_file(config_file)
        typer.echo(f"Configuration valid: {config.instance_id}")
        typer.echo(f"  procfs: {config.procfs_path}")
        typer.echo(f"  Emission: {config.emission}")
        typer.echo(f"  Poll interval: {config.poll_interval}s")
        typer.echo(f"  Server: {config.server_url or '(log only)'}")
        typer.echo(f"  Collectors: {len(config.collectors) or 'defaults'}")
        for entry in config.collectors:
            status = "enabled" if entry.enabled else "disabled"
            typer.echo(f"    - {entry.name} ({status})")
    except Exception as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
