"""Collector registration and instantiation."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

import structlog

if TYPE_CHECKING:
    from zoneinfo_collector.collectors.base import BaseCollector
    from zoneinfo_collector.core.config import CollectorConfig

logger = structlog.get_logger(__name__)

CollectorFactory = Callable[["CollectorConfig", dict[str, Any]], "BaseCollector"]


@dataclass(frozen=True)
class CollectorRegistration:
    """A named collector factory."""

    name: str
    factory: CollectorFactory
    default_enabled: bool = True


class CollectorRegistry:
    """Holds the collectors known to the application.

    Nothing registers itself on import: the application builds a registry
    explicitly, usually with ``build_default_registry``.
    """

    def __init__(self) -> None:
        self._registrations: dict[str, CollectorRegistration] = {}

    def register(
        self,
        name: str,
        factory: CollectorFactory,
        default_enabled: bool = True,
    ) -> None:
        """Register a collector factory.

        Args:
            name: Unique collector name
            factory: Callable building the collector from configuration
            default_enabled: Whether the collector runs when the
                configuration does not list collectors explicitly

        Raises:
            ValueError: If the name is already registered
        """
        if name in self._registrations:
            raise ValueError(f"collector {name!r} is already registered")
        self._registrations[name] = CollectorRegistration(
            name=name,
            factory=factory,
            default_enabled=default_enabled,
        )
        logger.debug("collector_registered", collector=name, default_enabled=default_enabled)

    def get(self, name: str) -> CollectorRegistration | None:
        return self._registrations.get(name)

    def names(self) -> list[str]:
        """List all registered collector names."""
        return list(self._registrations)

    def is_default_enabled(self, name: str) -> bool:
        registration = self._registrations.get(name)
        return registration is not None and registration.default_enabled

    def create(
        self,
        name: str,
        config: "CollectorConfig",
        settings: dict[str, Any] | None = None,
    ) -> "BaseCollector | None":
        """Create a collector instance.

        Args:
            name: Collector name
            config: Application configuration
            settings: Collector specific settings

        Returns:
            Collector instance or None if the collector is unknown or failed
        """
        registration = self._registrations.get(name)
        if registration is None:
            logger.error("collector_not_found", collector=name)
            return None

        try:
            instance = registration.factory(config, settings or {})
            logger.info("collector_instantiated", collector=name)
            return instance
        except Exception as e:
            logger.error("collector_instantiation_failed", collector=name, error=str(e))
            return None

    def create_enabled(self, config: "CollectorConfig") -> dict[str, "BaseCollector"]:
        """Create every collector enabled by the configuration.

        When the configuration lists no collectors, all collectors that are
        enabled by default are created.

        Args:
            config: Application configuration

        Returns:
            Dictionary mapping collector names to instances
        """
        if config.collectors:
            wanted = [(c.name, c.settings) for c in config.collectors if c.enabled]
        else:
            wanted = [
                (r.name, {}) for r in self._registrations.values() if r.default_enabled
            ]

        instances: dict[str, "BaseCollector"] = {}
        for name, settings in wanted:
            instance = self.create(name, config, settings)
            if instance is not None:
                instances[name] = instance
        return instances


def build_default_registry() -> CollectorRegistry:
    """Build the registry of built-in collectors."""
    from zoneinfo_collector.collectors.zoneinfo import new_zoneinfo_collector

    registry = CollectorRegistry()
    registry.register("zoneinfo", new_zoneinfo_collector, default_enabled=True)
    return registry
