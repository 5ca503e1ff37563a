"""Wall-clock scheduling of the engine's jobs with APScheduler."""

import logging

import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from rentcycle.services.engine import Engine
from rentcycle.utils.constants import JobName

logger = logging.getLogger(__name__)


def job_triggers(settings: dict) -> dict:
    """Cron trigger per job, in the configured timezone."""
    tz = pytz.timezone(settings.get("TIMEZONE", "UTC"))
    return {
        JobName.LIFECYCLE: CronTrigger(minute="*", timezone=tz),
        JobName.OVERDUE: CronTrigger(minute=0, timezone=tz),
        JobName.REMINDERS: CronTrigger(hour=settings.get("REMINDER_HOUR", 9), minute=0, timezone=tz),
        JobName.INSURANCE: CronTrigger(hour=settings.get("INSURANCE_HOUR", 8), minute=0, timezone=tz),
        JobName.RETENTION: CronTrigger(hour=0, minute=0, timezone=tz),
    }


def build_scheduler(engine: Engine) -> BackgroundScheduler:
    """
    One APScheduler job per engine job. A job never overlaps itself
    (max_instances=1) and missed ticks collapse into one run (coalesce).
    """
    tz = pytz.timezone(engine.settings.get("TIMEZONE", "UTC"))
    scheduler = BackgroundScheduler(timezone=tz)
    for name, trigger in job_triggers(engine.settings).items():
        scheduler.add_job(
            engine.run,
            trigger=trigger,
            args=[name],
            id=name,
            name=f"rentcycle:{name}",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=30,
            replace_existing=True,
        )
        logger.info("Scheduled job %s (%s)", name, trigger)
    return scheduler
