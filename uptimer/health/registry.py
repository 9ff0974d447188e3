"""Check registry: namespaced, first-registration-wins store of checks.

Namespaces are provider ids. Keys are unique across every namespace: a
second registration for a key that already exists is dropped with a
warning. The registry is written during startup only and then sealed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .engine import CheckDescriptor

logger = logging.getLogger(__name__)


class RegistrySealedError(RuntimeError):
    """Raised when registering into a registry that has been sealed."""


class CheckRegistry:
    """Process-wide store mapping check keys to descriptors."""

    def __init__(self) -> None:
        self._checks: dict[str, dict[str, CheckDescriptor]] = {}
        self._index: dict[str, str] = {}  # key -> namespace
        self._sealed = False

    # -- write phase -----------------------------------------------------------

    def register(self, namespace: str, descriptor: CheckDescriptor) -> bool:
        """Add a check under ``namespace``. Returns False if the key was taken."""
        if self._sealed:
            raise RegistrySealedError(
                f"Cannot register check '{descriptor.key}': registry is sealed"
            )

        owner = self._index.get(descriptor.key)
        if owner is not None:
            logger.warning(
                "Check already exists, skipping: %s (namespace=%s, registered by %s)",
                descriptor.key, namespace, owner,
            )
            return False

        self._checks.setdefault(namespace, {})[descriptor.key] = descriptor
        self._index[descriptor.key] = namespace
        logger.debug("Registered check %s in namespace %s", descriptor.key, namespace)
        return True

    def seal(self) -> None:
        """End the write phase; further registrations raise."""
        self._sealed = True
        logger.info(
            "Check registry sealed: %d checks across %d providers",
            len(self._index), len(self._checks),
        )

    @property
    def sealed(self) -> bool:
        return self._sealed

    # -- read phase ------------------------------------------------------------

    def lookup(self, key: str) -> CheckDescriptor | None:
        namespace = self._index.get(key)
        if namespace is None:
            return None
        return self._checks[namespace][key]

    def get(self, key: str) -> CheckDescriptor:
        descriptor = self.lookup(key)
        if descriptor is None:
            raise KeyError(key)
        return descriptor

    def namespace_of(self, key: str) -> str | None:
        return self._index.get(key)

    def namespaces(self) -> list[str]:
        return list(self._checks)

    def keys(self) -> list[str]:
        return list(self._index)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __iter__(self) -> Iterator[CheckDescriptor]:
        for namespace in self._checks.values():
            yield from namespace.values()

    def __len__(self) -> int:
        return len(self._index)
