"""Collector registry and factories."""

import pytest

from zoneinfo_collector.collectors.zoneinfo import ZoneInfoCollector
from zoneinfo_collector.core.config import CollectorConfig, CollectorSettings
from zoneinfo_collector.core.registry import CollectorRegistry, build_default_registry


def test_default_registry_has_zoneinfo():
    registry = build_default_registry()
    assert registry.names() == ["zoneinfo"]
    assert registry.is_default_enabled("zoneinfo")
    assert not registry.is_default_enabled("meminfo")


def test_default_registries_are_independent():
    first = build_default_registry()
    second = build_default_registry()
    first.register("extra", lambda config, settings: None)
    assert "extra" not in second.names()


def test_duplicate_registration_rejected():
    registry = build_default_registry()
    with pytest.raises(ValueError):
        registry.register("zoneinfo", lambda config, settings: None)


def test_create_enabled_uses_defaults(procfs):
    config = CollectorConfig(procfs_path=procfs)
    collectors = build_default_registry().create_enabled(config)
    assert list(collectors) == ["zoneinfo"]
    assert isinstance(collectors["zoneinfo"], ZoneInfoCollector)


def test_create_enabled_skips_disabled_by_default():
    registry = CollectorRegistry()
    registry.register("off", lambda config, settings: ZoneInfoCollector(), default_enabled=False)
    assert registry.create_enabled(CollectorConfig()) == {}


def test_explicit_collector_list():
    registry = build_default_registry()
    registry.register("off", lambda config, settings: ZoneInfoCollector(), default_enabled=False)
    config = CollectorConfig(
        collectors=[
            CollectorSettings(name="zoneinfo", enabled=False),
            CollectorSettings(name="off", enabled=True),
            CollectorSettings(name="missing", enabled=True),
        ]
    )
    assert list(registry.create_enabled(config)) == ["off"]


def test_settings_reach_factory():
    seen = {}

    def factory(config, settings):
        seen.update(settings)
        return ZoneInfoCollector()

    registry = CollectorRegistry()
    registry.register("custom", factory)
    config = CollectorConfig(
        collectors=[CollectorSettings(name="custom", settings={"procfs_path": "/host/proc"})]
    )
    registry.create_enabled(config)
    assert seen == {"procfs_path": "/host/proc"}


def test_failing_factory_is_skipped():
    def factory(config, settings):
        raise RuntimeError("boom")

    registry = CollectorRegistry()
    registry.register("bad", factory)
    assert registry.create("bad", CollectorConfig()) is None
    assert registry.create_enabled(CollectorConfig()) == {}
