"""Escalation policy: maps a check result to a log line or a stop."""

from __future__ import annotations

import logging

from .engine import CheckResult, Severity

logger = logging.getLogger(__name__)

# severity -> (log level, label)
SEVERITY_ACTIONS: dict[Severity, tuple[int, str]] = {
    Severity.DEBUG: (logging.DEBUG, "Check Debug"),
    Severity.NOTICE: (logging.INFO, "Check Notice"),
    Severity.WARNING: (logging.WARNING, "Check Warning"),
    Severity.ERROR: (logging.ERROR, "Check Error"),
    Severity.DOWN: (logging.ERROR, "Target Down"),
    Severity.FATAL: (logging.ERROR, "Check Fatal"),
}


def escalate(result: CheckResult, name: str, target: str) -> bool:
    """Log ``result`` for check ``name`` on ``target``.

    Returns True when the scheduler must stop.
    """
    extra = {"check": name, "target": target}

    if result.success:
        logger.debug("Check passed: %s on %s", name, target, extra=extra)
        return False

    level, label = SEVERITY_ACTIONS[result.severity]
    logger.log(
        level, "%s: %s on %s: %s", label, name, target, result.message,
        extra={**extra, "severity": result.severity.name, "error": result.message},
    )
    return result.severity is Severity.FATAL
