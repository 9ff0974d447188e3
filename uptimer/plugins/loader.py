"""Provider loading: discovers check providers and runs their lifecycle.

A provider is a Python module exporting::

    NAME = "My checks"

    def setup(ctx):        # register checks with ctx.add_check(descriptor)
        ...

    def shutdown(ctx):     # cleanup when the engine exits
        ...

Directory providers live in ``<providers_dir>/<name>/plugin.py``. Each one
is imported as its own package so it can import sibling modules relatively.
Built-in providers are plain importable module names.
"""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import logging
import re
import sys
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any

from ..health.engine import CheckDescriptor
from ..health.registry import CheckRegistry

logger = logging.getLogger(__name__)

PLUGIN_FILE = "plugin.py"
BUILTIN_PROVIDERS = ("uptimer.checks.provider",)

_NON_IDENT = re.compile(r"\W")


class LoadError(Exception):
    """A provider could not be imported or does not export the right shape."""


class SetupError(Exception):
    """A provider's setup() failed."""


class ProviderContext:
    """Capability handed to ``setup`` / ``shutdown``; bound to one provider."""

    def __init__(self, provider: Provider, registry: CheckRegistry) -> None:
        self._provider = provider
        self._registry = registry

    @property
    def provider_id(self) -> str:
        return self._provider.id

    @property
    def provider_name(self) -> str:
        return self._provider.name

    def add_check(self, descriptor: CheckDescriptor) -> bool:
        """Register a check under this provider's namespace."""
        return self._registry.register(self._provider.id, descriptor)


@dataclass
class Provider:
    """A loaded provider and its lifecycle hooks."""

    name: str
    setup: Callable[[ProviderContext], Any]
    shutdown: Callable[[ProviderContext], Any]
    source: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


# ── Discovery ────────────────────────────────────────────────────────────────


def discover_provider_dirs(root: Path) -> list[Path]:
    """Return provider directories under ``root`` in load order."""
    if not root.is_dir():
        raise LoadError(f"Providers directory not found: {root}")
    return sorted(
        p for p in root.iterdir()
        if p.is_dir() and not p.name.startswith((".", "_"))
    )


def load_providers(source: Path | str) -> list[Provider]:
    """Load every provider directory under ``source``.

    Fails on the first provider that cannot be loaded.
    """
    root = Path(source)
    providers = []
    for folder in discover_provider_dirs(root):
        providers.append(load_provider_from_dir(folder))
    logger.info("Loaded %d providers from %s", len(providers), root)
    return providers


def load_provider_from_dir(folder: Path) -> Provider:
    plugin_file = folder / PLUGIN_FILE
    if not plugin_file.is_file():
        raise LoadError(f"{folder}: missing {PLUGIN_FILE}")

    # Module names are unique per load
    slug = _NON_IDENT.sub("_", folder.name)
    module_name = f"uptimer_provider_{slug}_{uuid.uuid4().hex[:8]}"
    spec = importlib.util.spec_from_file_location(
        module_name, plugin_file, submodule_search_locations=[str(folder)],
    )
    if spec is None or spec.loader is None:
        raise LoadError(f"{plugin_file}: cannot create import spec")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise LoadError(f"{plugin_file}: failed to load: {type(e).__name__}: {e}") from e

    return provider_from_module(module, source=str(folder))


def load_builtin_providers(modules: Iterable[str] = BUILTIN_PROVIDERS) -> list[Provider]:
    """Load providers shipped as importable modules."""
    providers = []
    for name in modules:
        try:
            module = importlib.import_module(name)
        except Exception as e:
            raise LoadError(f"{name}: failed to import: {type(e).__name__}: {e}") from e
        providers.append(provider_from_module(module, source=name))
    return providers


def provider_from_module(module: ModuleType, source: str = "") -> Provider:
    """Check the exported shape of a provider module and wrap it."""
    source = source or module.__name__

    name = getattr(module, "NAME", None)
    if not isinstance(name, str):
        raise LoadError(f"{source}: NAME must be a string")

    return Provider(
        name=name,
        setup=_lifecycle_hook(module, "setup", source),
        shutdown=_lifecycle_hook(module, "shutdown", source),
        source=source,
    )


def _lifecycle_hook(module: ModuleType, attr: str, source: str) -> Callable[[ProviderContext], Any]:
    fn = getattr(module, attr, None)
    if not callable(fn):
        raise LoadError(f"{source}: {attr}() is missing")

    try:
        inspect.signature(fn).bind(None)
    except TypeError as e:
        raise LoadError(f"{source}: {attr}() must be `{attr}(ctx)`") from e
    except ValueError:
        # Builtins without an introspectable signature
        pass
    return fn


# ── Lifecycle ────────────────────────────────────────────────────────────────


def setup_provider(provider: Provider, registry: CheckRegistry) -> None:
    """Run ``provider.setup`` against a context bound to its id."""
    ctx = ProviderContext(provider, registry)
    try:
        provider.setup(ctx)
    except Exception as e:
        raise SetupError(f"{provider.name}: setup failed: {type(e).__name__}: {e}") from e


def shutdown_provider(provider: Provider, registry: CheckRegistry) -> None:
    """Run ``provider.shutdown``; errors are logged, never raised."""
    ctx = ProviderContext(provider, registry)
    try:
        provider.shutdown(ctx)
    except Exception:
        logger.exception("Provider shutdown failed: %s", provider.name)
