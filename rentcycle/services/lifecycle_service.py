"""Time-driven rent status transitions (reserved -> active -> completed)."""

import logging

from rentcycle.models.rent import Rent, derive_status
from rentcycle.services.common import customer_from_dict, rent_from_dict, vehicle_from_dict
from rentcycle.services.notifier import Alert
from rentcycle.services.runner import BaseJob, JobRun
from rentcycle.utils.constants import (
    JobName,
    Level,
    NotificationCategory,
    NotificationType,
    Priority,
    RentStatus,
)
from rentcycle.utils.decorators import scheduled_job

logger = logging.getLogger(__name__)


def overlapping_active_rents(store, rent: Rent) -> list[Rent]:
    """Other active rents on the same vehicle whose window overlaps this one."""
    clashes = []
    for other in map(rent_from_dict, store.rents_for_vehicle(rent.vehicle_id, RentStatus.ACTIVE)):
        if other.rent_id == rent.rent_id:
            continue
        other_end = other.returned_at
        rent_end = rent.returned_at
        starts_before_other_ends = other_end is None or rent.start_date < other_end
        other_starts_before_end = rent_end is None or other.start_date < rent_end
        if starts_before_other_ends and other_starts_before_end:
            clashes.append(other)
    return clashes


def is_vehicle_available(store, vehicle_id: str, now) -> bool:
    """No non-deleted active rent is still running at `now`."""
    return not any(
        derive_status(rent_from_dict(r), now) == RentStatus.ACTIVE
        for r in store.rents_for_vehicle(vehicle_id, RentStatus.ACTIVE))


class LifecycleService(BaseJob):
    """
    Runs every minute. Two conditional bulk updates, in order; the update
    predicate is the only reprocessing guard, so a second run is a no-op.

    The deadline is only checked before each bulk update. Once rows are
    moved they no longer match, so every moved row is notified in this run.
    """

    name = JobName.LIFECYCLE

    @scheduled_job
    def run(self, run: JobRun):
        if run.out_of_time():
            return
        started = self.store.bulk_update_status(
            RentStatus.RESERVED, RentStatus.ACTIVE, "start_date", lte=run.now)
        run.report.affected.extend(r["rent_id"] for r in started)
        for raw in started:
            rent = rent_from_dict(raw)
            with run.row(rent.rent_id):
                run.notified(self._notify(rent, NotificationType.RENT_STARTED, Level.INFO,
                                          self._conflicts(rent)))

        if run.out_of_time():
            return
        completed = self.store.bulk_update_status(
            RentStatus.ACTIVE, RentStatus.COMPLETED, "returned_at", lte=run.now)
        run.report.affected.extend(r["rent_id"] for r in completed)
        for raw in completed:
            rent = rent_from_dict(raw)
            with run.row(rent.rent_id):
                run.notified(self._notify(rent, NotificationType.RENT_COMPLETED, Level.SUCCESS))

        if started or completed:
            logger.info("Updated %d rent status(es): %d started, %d completed",
                        len(started) + len(completed), len(started), len(completed))

    def _conflicts(self, rent: Rent) -> list[str]:
        clashes = overlapping_active_rents(self.store, rent)
        if clashes:
            logger.warning("Vehicle %s double-booked: rent %s overlaps active %s",
                           rent.vehicle_id, rent.contract_id,
                           ", ".join(c.contract_id for c in clashes))
        return [c.rent_id for c in clashes]

    def _notify(self, rent: Rent, event_type: str, level: str, conflicts=None):
        vehicle = vehicle_from_dict(self.store.get_vehicle(rent.vehicle_id))
        customer = customer_from_dict(self.store.get_customer(rent.customer_id))
        metadata = {"rentalId": rent.rent_id, "rentContractId": rent.contract_id}
        if conflicts:
            metadata["conflictingRentIds"] = conflicts
        return self.notifier.notify(Alert(
            org_id=rent.org_id,
            event_type=event_type,
            category=NotificationCategory.RENTAL,
            priority=Priority.MEDIUM,
            level=level,
            action_url=f"/rentals/{rent.rent_id}",
            metadata=metadata,
            context={
                "contract_id": rent.contract_id,
                "car": vehicle.label if vehicle else "",
                "customer": customer.full_name if customer else "",
            },
        ))
