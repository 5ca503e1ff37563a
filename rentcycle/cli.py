"""Operator commands: `flask --app rentcycle run-job lifecycle`, `flask --app rentcycle scheduler`."""

import logging
import time

import click
from flask import current_app
from flask.cli import with_appcontext

from rentcycle.services.scheduler import build_scheduler
from rentcycle.utils.constants import JobName

logger = logging.getLogger(__name__)


def _engine():
    return current_app.extensions["rentcycle"]


@click.command("run-job")
@click.argument("name", type=click.Choice(JobName.ALL))
@with_appcontext
def run_job_command(name):
    """Run one job immediately and print its report."""
    report = _engine().run(name)
    click.echo(
        f"{report.job}: affected={len(report.affected)} notified={report.notified} "
        f"skipped={report.skipped} failed={report.failed}"
        + (" timed_out" if report.timed_out else "")
        + (f" error={report.error}" if report.error else ""))
    if report.error:
        raise SystemExit(1)


@click.command("scheduler")
@with_appcontext
def scheduler_command():
    """Run every job on its cadence until interrupted."""
    engine = _engine()
    if not current_app.config.get("SCHEDULER_ENABLED", True):
        click.echo("Scheduler disabled by config (RENTCYCLE_SCHEDULER_ENABLED).")
        return
    scheduler = build_scheduler(engine)
    scheduler.start()
    logger.info("Scheduler started with %d job(s)", len(scheduler.get_jobs()))
    try:
        while True:
            time.sleep(1)
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down scheduler")
        scheduler.shutdown(wait=False)


def register_cli(app):
    app.cli.add_command(run_job_command)
    app.cli.add_command(scheduler_command)
