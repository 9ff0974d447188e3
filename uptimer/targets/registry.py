"""Target registry: loads config.yaml and provides typed models.

The file lists monitored domains, each with an optional default interval and
an ordered list of checks. Any key of a check entry other than ``key`` and
``interval`` is passed to the check as a string argument::

    domains:
      - domain: example.com
        interval: 5m
        checks:
          - key: http
            interval: 30s
            retries: 3
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from ..durations import parse_duration

logger = logging.getLogger(__name__)

CONFIG_PATH = Path("config.yaml")

_RESERVED_CHECK_KEYS = ("key", "interval")


class ConfigError(Exception):
    """Raised when the targets file cannot be read or is malformed."""


# ── Data models ──────────────────────────────────────────────────────────────


@dataclass
class CheckConfig:
    """A configured check on a target."""

    key: str
    interval: timedelta | None = None
    args: dict[str, str] = field(default_factory=dict)


@dataclass
class TargetConfig:
    """A monitored domain or endpoint."""

    target: str
    interval: timedelta | None = None
    checks: list[CheckConfig] = field(default_factory=list)


# ── Registry ─────────────────────────────────────────────────────────────────


class TargetRegistry:
    """Loads and caches targets from the config file."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_PATH
        self._targets: list[TargetConfig] = []
        self._loaded = False

    def load(self, force: bool = False) -> list[TargetConfig]:
        """Parse the config file and return the target list."""
        if self._loaded and not force:
            return self._targets

        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read config file {self._path}: {e}") from e

        try:
            raw = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse {self._path}: {e}") from e

        self._targets = parse_targets(raw)
        self._loaded = True
        logger.info(
            "Loaded %d targets (%d checks) from %s",
            len(self._targets), len(self.all_checks()), self._path,
        )
        return self._targets

    def all_checks(self) -> list[tuple[TargetConfig, CheckConfig]]:
        """Return all (target, check) pairs in configuration order."""
        result = []
        for t in self._targets:
            for c in t.checks:
                result.append((t, c))
        return result

    def reload(self) -> list[TargetConfig]:
        """Force reload from disk."""
        return self.load(force=True)


# ── Parsers ──────────────────────────────────────────────────────────────────


def parse_targets(raw: Any) -> list[TargetConfig]:
    """Build TargetConfig records from the decoded YAML document."""
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")

    entries = raw.get("domains") or []
    if not isinstance(entries, list):
        raise ConfigError("'domains' must be a list")

    return [_parse_target(entry, i) for i, entry in enumerate(entries)]


def _parse_target(raw: Any, index: int) -> TargetConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"domains[{index}] must be a mapping")

    target = raw.get("domain")
    if not target or not isinstance(target, str):
        raise ConfigError(f"domains[{index}] is missing 'domain'")

    raw_checks = raw.get("checks") or []
    if not isinstance(raw_checks, list):
        raise ConfigError(f"{target}: 'checks' must be a list")

    return TargetConfig(
        target=target,
        interval=_parse_interval(raw.get("interval"), target),
        checks=[_parse_check(c, target, i) for i, c in enumerate(raw_checks)],
    )


def _parse_check(raw: Any, target: str, index: int) -> CheckConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"{target}: checks[{index}] must be a mapping")

    key = raw.get("key")
    if not key or not isinstance(key, str):
        raise ConfigError(f"{target}: checks[{index}] is missing 'key'")

    args = {
        str(k): _stringify(v)
        for k, v in raw.items()
        if k not in _RESERVED_CHECK_KEYS
    }

    return CheckConfig(
        key=key,
        interval=_parse_interval(raw.get("interval"), f"{target}/{key}"),
        args=args,
    )


def _parse_interval(value: Any, where: str) -> timedelta | None:
    if value is None or value == "":
        return None
    try:
        return parse_duration(value)
    except ValueError as e:
        raise ConfigError(f"{where}: bad interval: {e}") from e


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
