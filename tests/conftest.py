"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from uptimer.health.engine import CheckDescriptor, CheckResult
from uptimer.health.registry import CheckRegistry

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class RecordingCheck:
    """Check callable that records invocations and replays canned results."""

    def __init__(self, results: list[CheckResult] | None = None, log: list[str] | None = None) -> None:
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.results = list(results or [])
        self.log = log

    def __call__(self, target: str, args: dict[str, str]) -> CheckResult:
        self.calls.append((target, dict(args)))
        if self.log is not None:
            self.log.append(target)
        if self.results:
            return self.results.pop(0)
        return CheckResult.ok()


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def registry() -> CheckRegistry:
    return CheckRegistry()


@pytest.fixture
def make_descriptor() -> Callable[..., CheckDescriptor]:
    """Build a descriptor around a RecordingCheck (reachable as ``.run``)."""

    def _make(key: str, name: str | None = None, **kwargs: Any) -> CheckDescriptor:
        run = kwargs.pop("run", None) or RecordingCheck()
        return CheckDescriptor(key=key, name=name or key.title(), run=run, **kwargs)

    return _make
