"""Shared expiry policy for the TLS certificate and domain registration checks.

Given an expiration instant:

- already expired            -> DOWN
- expires within error_after -> ERROR
- expires within notify_after -> WARNING
- otherwise                  -> success

``error_after`` is expected to be shorter than ``notify_after``; that is not
enforced.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit

from ..durations import parse_duration
from ..health.engine import CheckResult, Severity

logger = logging.getLogger(__name__)

DEFAULT_NOTIFY_AFTER = "720h"  # 30 days
DEFAULT_ERROR_AFTER = "168h"  # 7 days

_RFC1123 = "%a, %d %b %Y %H:%M:%S UTC"


class ExpiryLookupError(Exception):
    """The expiration instant could not be resolved."""

    def __init__(self, message: str, severity: Severity = Severity.DOWN) -> None:
        super().__init__(message)
        self.severity = severity


def validate_expiry_args(args: Mapping[str, str]) -> None:
    for key in ("notify_after", "error_after"):
        if key not in args:
            continue
        try:
            parse_duration(args[key])
        except ValueError as e:
            raise ValueError(f"{key} must be a duration") from e


def expiry_windows(args: Mapping[str, str]) -> tuple[timedelta, timedelta]:
    """Return ``(error_after, notify_after)``; raises ValueError on bad values."""
    error_after = parse_duration(args.get("error_after") or DEFAULT_ERROR_AFTER)
    notify_after = parse_duration(args.get("notify_after") or DEFAULT_NOTIFY_AFTER)
    return error_after, notify_after


def classify_expiry(
    expires_at: datetime,
    now: datetime,
    error_after: timedelta,
    notify_after: timedelta,
    subject: str = "Certificate",
) -> CheckResult:
    """Apply the three-tier expiry policy."""
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    stamp = expires_at.astimezone(timezone.utc).strftime(_RFC1123)

    if expires_at < now:
        return CheckResult.fail(
            Severity.DOWN, f"{subject} is not valid anymore. Expiration date: {stamp}",
        )
    if expires_at < now + error_after:
        return CheckResult.fail(
            Severity.ERROR, f"{subject} is about to expire. Expiration date: {stamp}",
        )
    if expires_at < now + notify_after:
        return CheckResult.fail(
            Severity.WARNING, f"{subject} expires soon. Expiration date: {stamp}",
        )
    return CheckResult.ok(f"{subject} valid until {stamp}")


def hostname_of(address: str) -> str:
    """Extract the host name from a bare domain or a URL."""
    if "://" not in address:
        address = f"https://{address}"
    host = urlsplit(address).hostname
    if not host:
        raise ValueError(f"no hostname in {address!r}")
    return host


class ExpiryCheck:
    """Base for checks that resolve an expiration instant for a host."""

    subject = "Certificate"

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def fetch_expiry(self, hostname: str, args: Mapping[str, str]) -> datetime:
        raise NotImplementedError

    def check(self, address: str, args: Mapping[str, str]) -> CheckResult:
        try:
            error_after, notify_after = expiry_windows(args)
            hostname = hostname_of(address)
        except ValueError as e:
            return CheckResult.fail(Severity.FATAL, str(e))

        try:
            expires_at = self.fetch_expiry(hostname, args)
        except ExpiryLookupError as e:
            return CheckResult.fail(e.severity, str(e))

        logger.debug("%s for %s expires at %s", self.subject, hostname, expires_at)
        return classify_expiry(expires_at, self._clock(), error_after, notify_after, self.subject)
