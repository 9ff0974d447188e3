"""Health subsystem: check contract, registry, jobs, scheduler."""

from .engine import CheckDescriptor, CheckResult, Severity
from .jobs import InvalidArgsError, Job, UnknownCheckError, ValidationError, build_jobs
from .registry import CheckRegistry, RegistrySealedError
from .scheduler import Scheduler, SchedulerState, StopReason
