"""Nightly TTL sweep of old notifications."""

from rentcycle.services.runner import BaseJob, JobRun
from rentcycle.utils.constants import JobName, RETENTION_DAYS
from rentcycle.utils.decorators import scheduled_job


class RetentionService(BaseJob):
    name = JobName.RETENTION

    def __init__(self, store, notifier, sink, settings=None):
        super().__init__(store, notifier, settings)
        self.sink = sink

    @scheduled_job
    def run(self, run: JobRun):
        deleted = self.sink.cleanup_old_notifications(
            days=int(self.settings.get("RETENTION_DAYS", RETENTION_DAYS)),
            read_only=bool(self.settings.get("RETENTION_READ_ONLY", True)),
            now=run.now,
        )
        run.report.affected.extend(deleted)
