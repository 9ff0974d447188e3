"""HTTP(S) check: request the target and compare the status code.

Failures are tolerated across scheduled runs: while the instance's
consecutive-failure counter is below ``retries`` a failure is reported as
DEBUG, after that as ERROR. Any success resets the counter.

Arguments: ``method`` (GET|POST, default GET), ``success_code`` (default
200), ``retries`` (1-10, default 3), ``timeout`` (duration, default 5s).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

import httpx

from ..durations import parse_duration
from ..health.engine import CheckDescriptor, CheckResult, Severity

logger = logging.getLogger(__name__)

DEFAULT_METHOD = "GET"
DEFAULT_SUCCESS_CODE = "200"
DEFAULT_RETRIES = "3"
DEFAULT_TIMEOUT = "5s"

ALLOWED_METHODS = ("GET", "POST")


class HttpCheck:
    """Stateful HTTP check; ``failed`` survives between invocations."""

    def __init__(self) -> None:
        self.failed = 0

    def check(self, address: str, args: Mapping[str, str]) -> CheckResult:
        method = args.get("method") or DEFAULT_METHOD
        success_code = args.get("success_code") or DEFAULT_SUCCESS_CODE

        try:
            retries = int(args.get("retries") or DEFAULT_RETRIES)
            timeout = parse_duration(args.get("timeout") or DEFAULT_TIMEOUT)
        except ValueError as e:
            self.failed += 1
            return CheckResult.fail(Severity.FATAL, str(e))

        url = address if "://" in address else f"https://{address}"

        try:
            with httpx.Client(timeout=timeout.total_seconds(), follow_redirects=True) as client:
                resp = client.request(method, url)
        except httpx.InvalidURL as e:
            self.failed += 1
            return CheckResult.fail(Severity.FATAL, str(e))
        except httpx.HTTPError as e:
            return self._tolerate(retries, f"{type(e).__name__}: {e}")

        if str(resp.status_code) != success_code:
            return self._tolerate(
                retries, f"status code is not as expected: {resp.status_code}",
            )

        if self.failed:
            logger.info("%s recovered after %d failures", url, self.failed)
        self.failed = 0
        return CheckResult.ok(f"{resp.status_code} OK")

    def _tolerate(self, retries: int, message: str) -> CheckResult:
        severity = Severity.DEBUG if self.failed < retries else Severity.ERROR
        self.failed += 1
        return CheckResult.fail(severity, message)


def validate_http_args(args: Mapping[str, str]) -> None:
    method = args.get("method")
    if method is not None and method not in ALLOWED_METHODS:
        raise ValueError("method must be GET or POST")

    success_code = args.get("success_code")
    if success_code is not None:
        try:
            code = int(success_code)
        except ValueError as e:
            raise ValueError("success_code must be a number") from e
        if not 100 <= code <= 599:
            raise ValueError("success_code must be between 100 and 599")

    retries = args.get("retries")
    if retries is not None:
        try:
            num = int(retries)
        except ValueError as e:
            raise ValueError("retries must be a number") from e
        if not 1 <= num <= 10:
            raise ValueError("retries must be between 1 and 10")

    timeout = args.get("timeout")
    if timeout is not None:
        try:
            parsed = parse_duration(timeout)
        except ValueError as e:
            raise ValueError("timeout must be a duration") from e
        if parsed.total_seconds() <= 0:
            raise ValueError("timeout must be positive")


def http_check() -> CheckDescriptor:
    checker = HttpCheck()
    return CheckDescriptor(
        key="http",
        name="Http Check",
        run=checker.check,
        validate_args=validate_http_args,
        factory=http_check,
    )
