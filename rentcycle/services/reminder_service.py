"""Daily return reminders at fixed lookahead horizons."""

import logging
from datetime import timedelta

from rentcycle.services.common import customer_from_dict, day_bucket, rent_from_dict, vehicle_from_dict
from rentcycle.services.notifier import Alert
from rentcycle.services.runner import BaseJob, JobRun, dedupe_key
from rentcycle.utils.constants import (
    JobName,
    Level,
    NotificationCategory,
    NotificationType,
    Priority,
    REMINDER_HORIZONS,
    RentStatus,
    RepeatPolicy,
)
from rentcycle.utils.decorators import scheduled_job
from rentcycle.utils.filters import plural_variant

logger = logging.getLogger(__name__)


def reminder_priority(horizon: int) -> str:
    return Priority.HIGH if horizon == 1 else Priority.MEDIUM


class ReminderService(BaseJob):
    """
    For each horizon h, selects active rents whose expected_end_date lies in
    a one-day bucket h days ahead. Buckets are half-open, so a rent lands in
    at most one horizon per run.
    """

    name = JobName.REMINDERS

    @property
    def horizons(self) -> tuple:
        return tuple(self.settings.get("REMINDER_HORIZONS", REMINDER_HORIZONS))

    @property
    def policy(self) -> str:
        return self.settings.get("REMINDER_REPEAT_POLICY", RepeatPolicy.ONCE)

    def bucket(self, now, horizon: int):
        """
        One-day window `horizon` days out. Anchored on the run instant by
        default; REMINDER_BUCKET_ANCHOR="midnight" anchors on local midnight.
        """
        if self.settings.get("REMINDER_BUCKET_ANCHOR", "run") == "midnight":
            return day_bucket(now, horizon, self.tz_name)
        start = now + timedelta(days=horizon)
        return start, start + timedelta(days=1)

    @scheduled_job
    def run(self, run: JobRun):
        for horizon in self.horizons:
            start, end = self.bucket(run.now, horizon)
            rows = self.store.find_rents(RentStatus.ACTIVE, "expected_end_date", gte=start, lt=end)
            sent = 0
            for raw in run.each(rows):
                rent = rent_from_dict(raw)
                with run.row(rent.rent_id):
                    nid = self._remind(rent, horizon, run)
                    run.report.affected.append(rent.rent_id)
                    run.notified(nid)
                    sent += 1 if nid else 0
            logger.info("Sent %d return reminder(s) for %d day(s)", sent, horizon)

    def _remind(self, rent, horizon: int, run: JobRun):
        vehicle = vehicle_from_dict(self.store.get_vehicle(rent.vehicle_id))
        customer = customer_from_dict(self.store.get_customer(rent.customer_id))
        return self.notifier.notify(Alert(
            org_id=rent.org_id,
            event_type=NotificationType.RENT_RETURN_REMINDER,
            category=NotificationCategory.RENTAL,
            priority=reminder_priority(horizon),
            level=Level.INFO,
            action_url=f"/rentals/{rent.rent_id}",
            metadata={"rentalId": rent.rent_id, "daysUntilReturn": horizon},
            context={
                "contract_id": rent.contract_id,
                "days": horizon,
                "car": vehicle.label if vehicle else "",
                "customer": customer.full_name if customer else "",
                "expected_return": rent.expected_end_date,
            },
            variants=(plural_variant(horizon),),
            dedupe_key=dedupe_key(self.policy, NotificationType.RENT_RETURN_REMINDER, rent.rent_id,
                                  run.now, self.tz_name,
                                  scope=f"{horizon}:{rent.expected_end_date.isoformat()}"),
        ))
