"""Hourly detection of active rents past their expected end date."""

from rentcycle.models.rent import days_overdue
from rentcycle.services.common import customer_from_dict, rent_from_dict, vehicle_from_dict
from rentcycle.services.notifier import Alert
from rentcycle.services.runner import BaseJob, JobRun, dedupe_key
from rentcycle.utils.constants import (
    JobName,
    Level,
    NotificationCategory,
    NotificationType,
    Priority,
    RentStatus,
    RepeatPolicy,
)
from rentcycle.utils.decorators import scheduled_job
from rentcycle.utils.filters import plural_variant


class OverdueService(BaseJob):
    """
    Alerts on active rents with expected_end_date <= now. Never mutates the
    rent: an overdue rent stays active until it is returned. How often the
    same rent re-alerts is OVERDUE_REPEAT_POLICY.
    """

    name = JobName.OVERDUE

    @property
    def policy(self) -> str:
        return self.settings.get("OVERDUE_REPEAT_POLICY", RepeatPolicy.DAILY)

    @scheduled_job
    def run(self, run: JobRun):
        rows = self.store.find_rents(RentStatus.ACTIVE, "expected_end_date", lte=run.now)
        for raw in run.each(rows):
            rent = rent_from_dict(raw)
            with run.row(rent.rent_id):
                days = days_overdue(rent, run.now)
                vehicle = vehicle_from_dict(self.store.get_vehicle(rent.vehicle_id))
                customer = customer_from_dict(self.store.get_customer(rent.customer_id))
                nid = self.notifier.notify(Alert(
                    org_id=rent.org_id,
                    event_type=NotificationType.RENT_OVERDUE,
                    category=NotificationCategory.RENTAL,
                    priority=Priority.HIGH,
                    level=Level.WARNING,
                    action_url=f"/rentals/{rent.rent_id}",
                    metadata={
                        "rentalId": rent.rent_id,
                        "customerId": rent.customer_id,
                        "daysOverdue": days,
                    },
                    context={
                        "contract_id": rent.contract_id,
                        "days": days,
                        "days_overdue": days,
                        "car": vehicle.label if vehicle else "",
                        "customer": customer.full_name if customer else "",
                        "phone": customer.phone if customer else "",
                        "customer_email": customer.email if customer else "",
                    },
                    variants=(plural_variant(days),),
                    dedupe_key=dedupe_key(self.policy, NotificationType.RENT_OVERDUE, rent.rent_id,
                                          run.now, self.tz_name,
                                          scope=rent.expected_end_date.isoformat()),
                ))
                run.report.affected.append(rent.rent_id)
                run.notified(nid)
