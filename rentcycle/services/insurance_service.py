"""Daily insurance-expiry warnings for active vehicles."""

from datetime import timedelta

from rentcycle.models.rent import days_between_ceil
from rentcycle.services.common import vehicle_from_dict
from rentcycle.services.notifier import Alert
from rentcycle.services.runner import BaseJob, JobRun, dedupe_key
from rentcycle.utils.constants import (
    INSURANCE_WINDOW_DAYS,
    JobName,
    Level,
    NotificationCategory,
    NotificationType,
    Priority,
    RepeatPolicy,
)
from rentcycle.utils.decorators import scheduled_job
from rentcycle.utils.filters import plural_variant

# (max days, tier, priority, level), checked in order
EXPIRY_TIERS = (
    (3, "urgent", Priority.URGENT, Level.ERROR),
    (7, "high", Priority.HIGH, Level.ERROR),
    (None, "medium", Priority.MEDIUM, Level.WARNING),
)


def expiry_tier(days_until_expiry: int) -> tuple[str, str, str]:
    """Map days left to (tier, priority, level)."""
    for limit, tier, priority, level in EXPIRY_TIERS:
        if limit is None or days_until_expiry <= limit:
            break
    return tier, priority, level


class InsuranceService(BaseJob):
    name = JobName.INSURANCE

    @property
    def window_days(self) -> int:
        return int(self.settings.get("INSURANCE_WINDOW_DAYS", INSURANCE_WINDOW_DAYS))

    @property
    def policy(self) -> str:
        return self.settings.get("INSURANCE_REPEAT_POLICY", RepeatPolicy.DAILY)

    @scheduled_job
    def run(self, run: JobRun):
        rows = self.store.find_vehicles_by_expiry_window(
            run.now, run.now + timedelta(days=self.window_days), active_only=True)
        for raw in run.each(rows):
            vehicle = vehicle_from_dict(raw)
            with run.row(vehicle.vehicle_id):
                days = days_between_ceil(run.now, vehicle.insurance_expiry_date)
                tier, priority, level = expiry_tier(days)
                nid = self.notifier.notify(Alert(
                    org_id=vehicle.org_id,
                    event_type=NotificationType.CAR_INSURANCE_EXPIRING,
                    category=NotificationCategory.CAR,
                    priority=priority,
                    level=level,
                    action_url=f"/cars/{vehicle.vehicle_id}",
                    metadata={
                        "carId": vehicle.vehicle_id,
                        "daysUntilExpiry": days,
                        "insuranceExpiryDate": vehicle.insurance_expiry_date.isoformat(),
                    },
                    context={
                        "car": vehicle.label,
                        "year": vehicle.year,
                        "days": days,
                        "expiry_date": vehicle.insurance_expiry_date,
                    },
                    variants=(tier, plural_variant(days)),
                    dedupe_key=dedupe_key(
                        self.policy, NotificationType.CAR_INSURANCE_EXPIRING, vehicle.vehicle_id,
                        run.now, self.tz_name,
                        scope=f"{vehicle.insurance_expiry_date.date().isoformat()}:{tier}"),
                ))
                run.report.affected.append(vehicle.vehicle_id)
                run.notified(nid)
