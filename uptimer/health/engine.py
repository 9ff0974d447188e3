"""Check engine vocabulary: severities, results and the check contract.

Every pluggable check is described by a CheckDescriptor: a unique key, a
display name, a blocking ``run(target, args)`` callable and an optional
argument validator. Providers register descriptors; the scheduler invokes
them and reacts to the CheckResult they return.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from enum import IntEnum

# ── Models ───────────────────────────────────────────────────────────────────


class Severity(IntEnum):
    """Classification of a failed check, mildest first."""

    DEBUG = 0
    NOTICE = 1
    WARNING = 2
    ERROR = 3
    DOWN = 4
    FATAL = 5


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check invocation.

    ``severity`` is only meaningful when ``success`` is False.
    """

    success: bool
    severity: Severity = Severity.DEBUG
    message: str = ""

    def __post_init__(self) -> None:
        # Raises ValueError for levels outside the ladder
        object.__setattr__(self, "severity", Severity(self.severity))

    @classmethod
    def ok(cls, message: str = "") -> CheckResult:
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, severity: Severity, message: str) -> CheckResult:
        return cls(success=False, severity=severity, message=message)


RunFn = Callable[[str, Mapping[str, str]], CheckResult]
ValidateFn = Callable[[Mapping[str, str]], None]


@dataclass(frozen=True)
class CheckDescriptor:
    """A registrable check.

    ``validate_args`` raises ``ValueError`` when the configured arguments are
    unusable. ``factory`` builds a fresh descriptor bound to a new check
    instance; checks that keep state between runs (retry counters) set it so
    that every job gets its own instance.
    """

    key: str
    name: str
    run: RunFn
    validate_args: ValidateFn | None = None
    factory: Callable[[], CheckDescriptor] | None = None

    def instantiate(self) -> CheckDescriptor:
        """Return a descriptor with its own check instance."""
        if self.factory is None:
            return self
        fresh = self.factory()
        # Keep the registered identity even if the factory names it differently
        return replace(fresh, key=self.key, name=self.name)
