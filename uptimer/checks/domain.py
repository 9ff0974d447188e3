"""Domain registration expiry check (WHOIS).

Arguments: ``notify_after`` (default 720h), ``error_after`` (default 168h).
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

import whois

from ..health.engine import CheckDescriptor, Severity
from .expiry import ExpiryCheck, ExpiryLookupError, validate_expiry_args


class DomainCheck(ExpiryCheck):
    subject = "Domain"

    def fetch_expiry(self, hostname: str, args: Mapping[str, str]) -> datetime:
        try:
            record = whois.whois(hostname)
        except Exception as e:
            raise ExpiryLookupError(f"WHOIS lookup failed: {type(e).__name__}: {e}") from e

        expiration = record.get("expiration_date") if record else None
        # Registries sometimes report several dates; the earliest one counts
        if isinstance(expiration, list):
            dates = [d for d in expiration if isinstance(d, datetime)]
            expiration = min(dates, key=_sort_key) if dates else None

        if not isinstance(expiration, datetime):
            raise ExpiryLookupError(
                f"Failed to parse expiration date for {hostname}", severity=Severity.ERROR,
            )
        return expiration


def _sort_key(value: datetime) -> float:
    return value.timestamp()


def domain_check() -> CheckDescriptor:
    checker = DomainCheck()
    return CheckDescriptor(
        key="dns",
        name="Domain Check",
        run=checker.check,
        validate_args=validate_expiry_args,
        factory=domain_check,
    )
