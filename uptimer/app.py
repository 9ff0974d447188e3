"""Application wiring: providers → registry → jobs.

Startup order: load targets, load and set up providers, seal the registry,
validate the configuration, build jobs. Any failure aborts startup.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from .config import Settings
from .health.jobs import Job, build_jobs
from .health.registry import CheckRegistry
from .plugins.loader import (
    Provider,
    load_builtin_providers,
    load_providers,
    setup_provider,
    shutdown_provider,
)
from .targets.registry import TargetRegistry

logger = logging.getLogger(__name__)


class App:
    """Holds the check registry and the providers that populated it."""

    def __init__(self, registry: CheckRegistry | None = None) -> None:
        self.registry = registry or CheckRegistry()
        self.providers: list[Provider] = []

    def add_provider(self, provider: Provider) -> None:
        """Run the provider's setup and keep it for shutdown."""
        logger.info("Loading provider: %s (%s)", provider.name, provider.source)
        setup_provider(provider, self.registry)
        self.providers.append(provider)
        logger.info("Provider loaded: %s", provider.name)

    def add_providers(self, providers: Iterable[Provider]) -> None:
        for provider in providers:
            self.add_provider(provider)

    def shutdown(self) -> None:
        """Call every provider's shutdown hook, last loaded first."""
        for provider in reversed(self.providers):
            logger.info("Shutting down provider: %s", provider.name)
            shutdown_provider(provider, self.registry)
        self.providers.clear()


def discover_providers(settings: Settings) -> list[Provider]:
    """Built-in providers first, then the providers directory."""
    providers: list[Provider] = []
    if settings.builtin_providers:
        providers.extend(load_builtin_providers())
    if settings.providers_dir:
        providers.extend(load_providers(Path(settings.providers_dir)))
    return providers


def bootstrap(settings: Settings, now: datetime | None = None) -> tuple[App, list[Job]]:
    """Build the app and its job list, or raise the first startup error."""
    logger.info("Loading config...")
    targets = TargetRegistry(Path(settings.config_file)).load()
    logger.info("Config loaded")

    logger.info("Loading providers...")
    app = App()
    app.add_providers(discover_providers(settings))
    app.registry.seal()

    jobs = build_jobs(targets, app.registry, now=now)
    return app, jobs
