"""Entry point for the uptimer health-check engine."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .app import bootstrap
from .config import Settings, settings
from .durations import format_duration
from .health.jobs import Job, ValidationError
from .health.scheduler import Scheduler, StopReason
from .plugins.loader import LoadError, SetupError
from .targets.registry import ConfigError

console = Console()
logger = logging.getLogger("uptimer")

STARTUP_ERRORS = (ConfigError, LoadError, SetupError, ValidationError)


def jobs_table(jobs: list[Job], default_interval: timedelta) -> Table:
    table = Table(title="Scheduled checks")
    table.add_column("Target")
    table.add_column("Check")
    table.add_column("Interval", justify="right")
    table.add_column("Args", style="dim")
    for job in jobs:
        args = ", ".join(f"{k}={v}" for k, v in job.check_config.args.items())
        table.add_row(
            job.target.target, job.name, format_duration(job.interval(default_interval)), args,
        )
    return table


def run_validate(cfg: Settings) -> int:
    """Load providers and config, validate, print the job table."""
    try:
        app, jobs = bootstrap(cfg)
    except STARTUP_ERRORS as e:
        logger.error("Startup failed: %s", e)
        return 1

    default_interval = timedelta(seconds=cfg.default_interval_seconds)
    console.print(jobs_table(jobs, default_interval))
    console.print(f"[green]Config OK[/green]: {len(jobs)} checks, {len(app.registry)} registered")
    app.shutdown()
    return 0


def run_scheduler(cfg: Settings) -> int:
    """Start the engine and block until it stops. Returns the exit status."""
    console.print(
        Panel.fit(
            f"[bold]uptimer {__version__}[/bold]\n"
            f"Config:    {cfg.config_file}\n"
            f"Providers: {cfg.providers_dir or '(built-in only)'}\n"
            f"Tick:      {cfg.tick_seconds}s",
            title="uptimer",
            border_style="green",
        )
    )

    try:
        app, jobs = bootstrap(cfg)
    except STARTUP_ERRORS as e:
        logger.error("Startup failed: %s", e)
        return 1

    default_interval = timedelta(seconds=cfg.default_interval_seconds)
    console.print(jobs_table(jobs, default_interval))

    scheduler = Scheduler(
        jobs, tick_seconds=cfg.tick_seconds, default_interval=default_interval,
    )
    logger.info("Starting scheduler...")
    try:
        reason = asyncio.run(scheduler.run())
    finally:
        app.shutdown()

    if reason is StopReason.FATAL:
        logger.error("Exiting after fatal check result")
        return 1
    logger.info("Exiting...")
    return 0


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.config:
        overrides["config_file"] = args.config
    if args.providers is not None:
        overrides["providers_dir"] = args.providers
    if args.no_builtin:
        overrides["builtin_providers"] = False
    if args.tick is not None:
        overrides["tick_seconds"] = args.tick
    if args.log_level:
        overrides["log_level"] = args.log_level
    return settings.model_copy(update=overrides)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="uptimer health-check engine")
    parser.add_argument("-c", "--config", help="Targets file (default: config.yaml)")
    parser.add_argument("-p", "--providers", help="Providers directory")
    parser.add_argument("--no-builtin", action="store_true", help="Skip the bundled checks")
    parser.add_argument("--tick", type=float, help="Scheduler tick in seconds")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Run the scheduler")
    sub.add_parser("validate", help="Validate config and print the job table")

    args = parser.parse_args(argv)
    cfg = _settings_from_args(args)

    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    if args.command == "validate":
        sys.exit(run_validate(cfg))
    elif args.command in ("run", None):
        sys.exit(run_scheduler(cfg))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
