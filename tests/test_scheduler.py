"""Tests for the scheduler loop and the escalation policy."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from datetime import datetime, timedelta

import pytest

from uptimer.health.engine import CheckDescriptor, CheckResult, Severity
from uptimer.health.escalation import escalate
from uptimer.health.jobs import Job
from uptimer.health.scheduler import Scheduler, SchedulerState, StopReason
from uptimer.targets.registry import CheckConfig, TargetConfig

from conftest import RecordingCheck


def make_job(
    target: str,
    run,
    next_run: datetime,
    check_interval: timedelta | None = None,
    target_interval: timedelta | None = None,
    args: dict[str, str] | None = None,
) -> Job:
    return Job(
        target=TargetConfig(target, interval=target_interval),
        check_config=CheckConfig("canary", interval=check_interval, args=args or {}),
        descriptor=CheckDescriptor(key="canary", name="Canary", run=run),
        next_run=next_run,
    )


# ── run_tick ─────────────────────────────────────────────────────────────────


class TestRunTick:
    def test_runs_due_jobs_in_order(self, t0: datetime) -> None:
        order: list[str] = []
        jobs = [
            make_job("a.com", RecordingCheck(log=order), t0),
            make_job("b.com", RecordingCheck(log=order), t0),
            make_job("c.com", RecordingCheck(log=order), t0),
        ]
        ran = Scheduler(jobs).run_tick(t0 + timedelta(seconds=1))
        assert ran == 3
        assert order == ["a.com", "b.com", "c.com"]

    def test_passes_target_and_args(self, t0: datetime) -> None:
        check = RecordingCheck()
        job = make_job("a.com", check, t0, args={"retries": "3"})
        Scheduler([job]).run_tick(t0 + timedelta(seconds=1))
        assert check.calls == [("a.com", {"retries": "3"})]

    def test_job_due_exactly_now_does_not_run(self, t0: datetime) -> None:
        check = RecordingCheck()
        job = make_job("a.com", check, t0)
        assert Scheduler([job]).run_tick(t0) == 0
        assert check.calls == []
        assert job.next_run == t0

    def test_future_job_skipped(self, t0: datetime) -> None:
        check = RecordingCheck()
        job = make_job("a.com", check, t0 + timedelta(minutes=1))
        Scheduler([job]).run_tick(t0 + timedelta(seconds=30))
        assert check.calls == []


class TestReschedule:
    def test_check_interval(self, t0: datetime) -> None:
        job = make_job(
            "a.com", RecordingCheck(), t0,
            check_interval=timedelta(seconds=30), target_interval=timedelta(minutes=5),
        )
        now = t0 + timedelta(seconds=1)
        Scheduler([job]).run_tick(now)
        assert job.next_run == now + timedelta(seconds=30)

    def test_target_interval(self, t0: datetime) -> None:
        job = make_job("a.com", RecordingCheck(), t0, target_interval=timedelta(minutes=5))
        now = t0 + timedelta(seconds=1)
        Scheduler([job]).run_tick(now)
        assert job.next_run == now + timedelta(minutes=5)

    def test_default_interval(self, t0: datetime) -> None:
        job = make_job("a.com", RecordingCheck(), t0)
        now = t0 + timedelta(seconds=1)
        Scheduler([job]).run_tick(now)
        assert job.next_run == now + timedelta(seconds=60)

    def test_configured_default_interval(self, t0: datetime) -> None:
        job = make_job("a.com", RecordingCheck(), t0)
        now = t0 + timedelta(seconds=1)
        Scheduler([job], default_interval=timedelta(seconds=10)).run_tick(now)
        assert job.next_run == now + timedelta(seconds=10)

    def test_failed_result_still_rescheduled(self, t0: datetime) -> None:
        check = RecordingCheck([CheckResult.fail(Severity.ERROR, "boom")])
        job = make_job("a.com", check, t0)
        now = t0 + timedelta(seconds=1)
        Scheduler([job]).run_tick(now)
        assert job.next_run == now + timedelta(seconds=60)

    def test_runs_again_only_after_interval(self, t0: datetime) -> None:
        check = RecordingCheck()
        job = make_job("a.com", check, t0, check_interval=timedelta(seconds=10))
        scheduler = Scheduler([job])

        for second in range(1, 22):
            scheduler.run_tick(t0 + timedelta(seconds=second))

        # runs at t0+1s and t0+12s
        assert len(check.calls) == 2


class TestFatal:
    def test_fatal_halts_rest_of_tick(self, t0: datetime) -> None:
        after = RecordingCheck()
        jobs = [
            make_job("a.com", RecordingCheck(), t0),
            make_job("b.com", RecordingCheck([CheckResult.fail(Severity.FATAL, "bad args")]), t0),
            make_job("c.com", after, t0),
        ]
        scheduler = Scheduler(jobs)
        ran = scheduler.run_tick(t0 + timedelta(seconds=1))

        assert ran == 2
        assert after.calls == []
        assert scheduler.state is SchedulerState.STOPPED
        assert scheduler.stop_reason is StopReason.FATAL
        # the fatal job is not rescheduled
        assert jobs[1].next_run == t0

    def test_no_ticks_after_fatal(self, t0: datetime) -> None:
        check = RecordingCheck([CheckResult.fail(Severity.FATAL, "bad")])
        scheduler = Scheduler([make_job("a.com", check, t0)])
        scheduler.run_tick(t0 + timedelta(seconds=1))
        scheduler.run_tick(t0 + timedelta(minutes=5))
        assert len(check.calls) == 1

    @pytest.mark.parametrize(
        "severity",
        [Severity.DEBUG, Severity.NOTICE, Severity.WARNING, Severity.ERROR, Severity.DOWN],
    )
    def test_other_severities_continue(self, t0: datetime, severity: Severity) -> None:
        after = RecordingCheck()
        jobs = [
            make_job("a.com", RecordingCheck([CheckResult.fail(severity, "x")]), t0),
            make_job("b.com", after, t0),
        ]
        scheduler = Scheduler(jobs)
        scheduler.run_tick(t0 + timedelta(seconds=1))
        assert len(after.calls) == 1
        assert scheduler.state is SchedulerState.RUNNING


class TestBrokenChecks:
    def test_exception_becomes_error(self, t0: datetime, caplog) -> None:
        def explode(target: str, args: dict[str, str]) -> CheckResult:
            raise RuntimeError("kaboom")

        after = RecordingCheck()
        jobs = [make_job("a.com", explode, t0), make_job("b.com", after, t0)]
        scheduler = Scheduler(jobs)
        now = t0 + timedelta(seconds=1)

        with caplog.at_level(logging.ERROR):
            scheduler.run_tick(now)

        assert len(after.calls) == 1
        assert jobs[0].next_run == now + timedelta(seconds=60)
        assert any("kaboom" in r.getMessage() for r in caplog.records)

    def test_plain_int_fatal_stops(self, t0: datetime) -> None:
        after = RecordingCheck()
        jobs = [
            make_job("a.com", lambda t, a: CheckResult(success=False, severity=5, message="x"), t0),
            make_job("b.com", after, t0),
        ]
        scheduler = Scheduler(jobs)
        scheduler.run_tick(t0 + timedelta(seconds=1))

        assert scheduler.state is SchedulerState.STOPPED
        assert scheduler.stop_reason is StopReason.FATAL
        assert after.calls == []

    def test_out_of_range_severity_becomes_error(self, t0: datetime) -> None:
        after = RecordingCheck()
        jobs = [
            make_job("a.com", lambda t, a: CheckResult(success=False, severity=42), t0),
            make_job("b.com", after, t0),
        ]
        scheduler = Scheduler(jobs)
        now = t0 + timedelta(seconds=1)
        scheduler.run_tick(now)

        assert scheduler.state is SchedulerState.RUNNING
        assert len(after.calls) == 1
        assert jobs[0].next_run == now + timedelta(seconds=60)

    def test_wrong_return_type(self, t0: datetime) -> None:
        job = make_job("a.com", lambda t, a: "ok", t0)
        scheduler = Scheduler([job])
        scheduler.run_tick(t0 + timedelta(seconds=1))
        assert scheduler.state is SchedulerState.RUNNING


# ── Escalation ───────────────────────────────────────────────────────────────


class TestEscalate:
    @pytest.mark.parametrize(
        ("severity", "level", "label"),
        [
            (Severity.DEBUG, logging.DEBUG, "Check Debug"),
            (Severity.NOTICE, logging.INFO, "Check Notice"),
            (Severity.WARNING, logging.WARNING, "Check Warning"),
            (Severity.ERROR, logging.ERROR, "Check Error"),
            (Severity.DOWN, logging.ERROR, "Target Down"),
            (Severity.FATAL, logging.ERROR, "Check Fatal"),
        ],
    )
    def test_levels(self, severity: Severity, level: int, label: str, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="uptimer.health.escalation")
        stop = escalate(CheckResult.fail(severity, "msg"), "Http Check", "a.com")

        assert stop is (severity is Severity.FATAL)
        record = caplog.records[-1]
        assert record.levelno == level
        assert label in record.getMessage()
        assert record.target == "a.com"
        assert record.check == "Http Check"
        assert record.error == "msg"

    def test_success_is_quiet(self, caplog) -> None:
        caplog.set_level(logging.INFO, logger="uptimer.health.escalation")
        assert escalate(CheckResult.ok(), "Http Check", "a.com") is False
        assert caplog.records == []

    def test_success_ignores_severity(self) -> None:
        result = CheckResult(success=True, severity=Severity.FATAL)
        assert escalate(result, "Http Check", "a.com") is False


# ── Async loop ───────────────────────────────────────────────────────────────


class TestRunLoop:
    def test_graceful_stop_finishes_tick(self, t0: datetime) -> None:
        holder: dict[str, Scheduler] = {}
        second = RecordingCheck()

        def stopper(target: str, args: dict[str, str]) -> CheckResult:
            holder["s"].request_stop()
            return CheckResult.ok()

        scheduler = Scheduler(
            [make_job("a.com", stopper, t0), make_job("b.com", second, t0)],
            tick_seconds=0.01,
        )
        holder["s"] = scheduler

        reason = asyncio.run(scheduler.run(install_signal_handlers=False))

        assert reason is StopReason.GRACEFUL
        assert scheduler.state is SchedulerState.STOPPED
        assert scheduler.ticks == 1
        assert len(second.calls) == 1

    def test_fatal_stops_loop(self, t0: datetime) -> None:
        check = RecordingCheck([CheckResult.fail(Severity.FATAL, "bad")])
        scheduler = Scheduler([make_job("a.com", check, t0)], tick_seconds=0.01)

        reason = asyncio.run(scheduler.run(install_signal_handlers=False))

        assert reason is StopReason.FATAL
        assert len(check.calls) == 1

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    def test_sigterm_drains_and_restores_handlers(self, t0: datetime) -> None:
        second = RecordingCheck()

        def terminate(target: str, args: dict[str, str]) -> CheckResult:
            os.kill(os.getpid(), signal.SIGTERM)
            return CheckResult.ok()

        scheduler = Scheduler(
            [make_job("a.com", terminate, t0), make_job("b.com", second, t0)],
            tick_seconds=0.01,
        )

        reason = asyncio.run(scheduler.run())

        assert reason is StopReason.GRACEFUL
        assert scheduler.ticks == 1
        assert len(second.calls) == 1
        assert signal.getsignal(signal.SIGTERM) == signal.SIG_DFL
        assert signal.getsignal(signal.SIGINT) is signal.default_int_handler

    def test_stop_before_first_tick(self, t0: datetime) -> None:
        check = RecordingCheck()
        scheduler = Scheduler([make_job("a.com", check, t0)], tick_seconds=0.01)
        scheduler.request_stop()
        assert scheduler.state is SchedulerState.DRAINING

        reason = asyncio.run(scheduler.run(install_signal_handlers=False))

        assert reason is StopReason.GRACEFUL
        assert check.calls == []
