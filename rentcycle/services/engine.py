"""Wires the store, sink, composer, mailer and jobs together from config."""

import logging
from typing import Optional

from rentcycle.models.store import Store
from rentcycle.services.common import _store
from rentcycle.services.composer import Composer
from rentcycle.services.email_service import EmailService
from rentcycle.services.insurance_service import InsuranceService
from rentcycle.services.lifecycle_service import LifecycleService
from rentcycle.services.notification_service import NotificationService
from rentcycle.services.notifier import OwnerNotifier
from rentcycle.services.overdue_service import OverdueService
from rentcycle.services.reminder_service import ReminderService
from rentcycle.services.retention_service import RetentionService
from rentcycle.services.runner import JobReport
from rentcycle.utils.constants import DEFAULT_LOCALE, JobName, RepeatPolicy

logger = logging.getLogger(__name__)


class Engine:
    """
    One object per process holding every collaborator. Jobs share the store
    and sinks but no other state.
    """

    def __init__(self, settings: dict, store: Optional[Store] = None,
                 mailer: Optional[EmailService] = None, composer: Optional[Composer] = None):
        self.settings = dict(settings)
        for key in ("OVERDUE_REPEAT_POLICY", "REMINDER_REPEAT_POLICY", "INSURANCE_REPEAT_POLICY"):
            if key in self.settings and self.settings[key] not in RepeatPolicy.ALL:
                raise ValueError(f"{key} must be one of {RepeatPolicy.ALL}, got {self.settings[key]!r}")

        self.store = store or _store(self.settings.get("DATA_PATH"))
        self.sink = NotificationService(self.store)
        self.mailer = mailer or EmailService.from_config(self.settings)
        self.composer = composer or Composer(
            default_locale=self.settings.get("DEFAULT_LOCALE", DEFAULT_LOCALE),
            tz_name=self.settings.get("TIMEZONE", "UTC"),
            base_url=self.settings.get("APP_BASE_URL", ""),
        )
        self.notifier = OwnerNotifier(self.store, self.sink, self.composer, self.mailer)

        self.jobs = {
            JobName.LIFECYCLE: LifecycleService(self.store, self.notifier, self.settings),
            JobName.OVERDUE: OverdueService(self.store, self.notifier, self.settings),
            JobName.REMINDERS: ReminderService(self.store, self.notifier, self.settings),
            JobName.INSURANCE: InsuranceService(self.store, self.notifier, self.settings),
            JobName.RETENTION: RetentionService(self.store, self.notifier, self.sink, self.settings),
        }

    def run(self, name: str, now=None) -> JobReport:
        try:
            job = self.jobs[name]
        except KeyError:
            raise ValueError(f"Unknown job {name!r}; expected one of {sorted(self.jobs)}") from None
        return job.run(now)
