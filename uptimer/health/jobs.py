"""Job materializer: turns configured (target, check) pairs into jobs.

Validation is a strict pre-flight pass: every configured check must resolve
to a registered descriptor and pass that descriptor's own argument
validator before a single job is built.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..targets.registry import CheckConfig, TargetConfig
from .engine import CheckDescriptor
from .registry import CheckRegistry

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = timedelta(minutes=1)


class ValidationError(Exception):
    """Base class for configuration that does not fit the registered checks."""

    def __init__(self, message: str, target: str, key: str) -> None:
        super().__init__(message)
        self.target = target
        self.key = key


class UnknownCheckError(ValidationError):
    """A configured check key has no registered descriptor."""


class InvalidArgsError(ValidationError):
    """A check's validator rejected the configured arguments."""


@dataclass(eq=False)
class Job:
    """One scheduled binding of a target to a configured check.

    ``next_run`` is owned by the scheduler; everything else is fixed.
    """

    target: TargetConfig
    check_config: CheckConfig
    descriptor: CheckDescriptor
    next_run: datetime

    @property
    def name(self) -> str:
        return self.descriptor.name

    def interval(self, default: timedelta = DEFAULT_INTERVAL) -> timedelta:
        """Resolve the run interval: check, then target, then default."""
        if self.check_config.interval and self.check_config.interval > timedelta(0):
            return self.check_config.interval
        if self.target.interval and self.target.interval > timedelta(0):
            return self.target.interval
        return default

    def is_due(self, now: datetime) -> bool:
        return self.next_run < now


def _pairs(targets: Iterable[TargetConfig]) -> list[tuple[TargetConfig, CheckConfig]]:
    return [(t, c) for t in targets for c in t.checks]


def validate_config(targets: Iterable[TargetConfig], registry: CheckRegistry) -> None:
    """Check every configured check against the registry.

    Raises UnknownCheckError or InvalidArgsError on the first offending entry.
    """
    logger.info("Validating config...")
    for target, check_config in _pairs(targets):
        descriptor = registry.lookup(check_config.key)
        if descriptor is None:
            raise UnknownCheckError(
                f"Check not found: {check_config.key} (target {target.target})",
                target=target.target, key=check_config.key,
            )

        if descriptor.validate_args is None:
            continue
        try:
            descriptor.validate_args(dict(check_config.args))
        except Exception as e:
            # ValueError messages are shown as-is, other errors with their type
            detail = str(e) if isinstance(e, ValueError) else f"{type(e).__name__}: {e}"
            raise InvalidArgsError(
                f"Check args validation failed for {descriptor.name} "
                f"(target {target.target}): {detail}",
                target=target.target, key=check_config.key,
            ) from e
    logger.info("Config validated")


def build_jobs(
    targets: Iterable[TargetConfig],
    registry: CheckRegistry,
    now: datetime | None = None,
) -> list[Job]:
    """Validate the configuration, then build one job per configured check."""
    targets = list(targets)
    validate_config(targets, registry)

    start = now or datetime.now(timezone.utc)
    jobs = []
    for target, check_config in _pairs(targets):
        descriptor = registry.get(check_config.key).instantiate()
        logger.info(
            "Adding job: %s on %s args=%s",
            descriptor.name, target.target, check_config.args,
        )
        jobs.append(
            Job(
                target=target,
                check_config=check_config,
                descriptor=descriptor,
                next_run=start,
            )
        )
    return jobs
