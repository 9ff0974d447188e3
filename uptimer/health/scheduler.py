"""Health check scheduler: runs due jobs on a fixed tick.

A single asyncio loop wakes every tick, picks the jobs whose ``next_run``
has passed and runs them one after another in job order. The tick's work
runs on a one-worker thread pool so blocking checks never overlap and the
event loop keeps handling SIGINT / SIGTERM.

States::

    RUNNING --request_stop()--> DRAINING --tick done--> STOPPED
    RUNNING --FATAL result-------------------------> STOPPED
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from enum import Enum

from .engine import CheckResult, Severity
from .escalation import escalate
from .jobs import DEFAULT_INTERVAL, Job

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 1.0

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SchedulerState(str, Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class StopReason(str, Enum):
    GRACEFUL = "graceful"
    FATAL = "fatal"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:
    """Owns the job set and the tick loop.

    Lifecycle:
        scheduler = Scheduler(jobs)
        reason = asyncio.run(scheduler.run())
    """

    def __init__(
        self,
        jobs: Iterable[Job],
        tick_seconds: float = DEFAULT_TICK_SECONDS,
        default_interval: timedelta = DEFAULT_INTERVAL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.jobs = list(jobs)
        self.tick_seconds = tick_seconds
        self.default_interval = default_interval
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="uptimer-check")
        self.state = SchedulerState.RUNNING
        self.stop_reason: StopReason | None = None
        self.ticks = 0

    # -- public API ------------------------------------------------------------

    def request_stop(self) -> None:
        """Ask the loop to exit after the tick in flight (graceful stop)."""
        if self.state is SchedulerState.RUNNING:
            logger.info("Stop requested, draining...")
            self.state = SchedulerState.DRAINING

    def run_tick(self, now: datetime | None = None) -> int:
        """Run every job due at ``now``. Returns how many jobs ran."""
        now = now or self._clock()
        self.ticks += 1
        ran = 0

        for job in self.jobs:
            if self.state is SchedulerState.STOPPED:
                break
            if not job.is_due(now):
                continue

            logger.info("Running check: %s on %s", job.name, job.target.target)
            result = self._invoke(job)
            ran += 1

            if escalate(result, job.name, job.target.target):
                self._stop(StopReason.FATAL)
                break

            job.next_run = now + job.interval(self.default_interval)

        return ran

    async def run(self, install_signal_handlers: bool = True) -> StopReason:
        """Tick until a stop is requested or a check reports FATAL."""
        loop = asyncio.get_running_loop()
        if install_signal_handlers:
            self._install_signal_handlers(loop)

        logger.info(
            "Scheduler started: %d jobs, tick=%ss", len(self.jobs), self.tick_seconds,
        )
        try:
            while self.state is SchedulerState.RUNNING:
                await asyncio.sleep(self.tick_seconds)
                if self.state is not SchedulerState.RUNNING:
                    break
                await loop.run_in_executor(self._executor, self.run_tick, self._clock())
        finally:
            if install_signal_handlers:
                self._remove_signal_handlers(loop)
            self._executor.shutdown(wait=False)

        if self.state is not SchedulerState.STOPPED:
            self._stop(StopReason.GRACEFUL)
        assert self.stop_reason is not None
        return self.stop_reason

    # -- internals -------------------------------------------------------------

    def _invoke(self, job: Job) -> CheckResult:
        try:
            result = job.descriptor.run(job.target.target, dict(job.check_config.args))
        except ValueError as e:
            # Includes results built with a severity outside the ladder
            logger.exception("Check failed: %s on %s", job.name, job.target.target)
            return CheckResult.fail(Severity.ERROR, f"invalid check result: {e}")
        except Exception as e:
            logger.exception("Check raised: %s on %s", job.name, job.target.target)
            return CheckResult.fail(Severity.ERROR, f"{type(e).__name__}: {e}")

        if not isinstance(result, CheckResult):
            return CheckResult.fail(
                Severity.ERROR,
                f"check returned {type(result).__name__}, expected CheckResult",
            )
        return result

    def _stop(self, reason: StopReason) -> None:
        self.state = SchedulerState.STOPPED
        self.stop_reason = reason
        logger.info("Scheduler stopped (%s) after %d ticks", reason.value, self.ticks)

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in _STOP_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except NotImplementedError:
                # Windows event loops
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(self.request_stop))

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in _STOP_SIGNALS:
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                signal.signal(sig, signal.SIG_DFL)
