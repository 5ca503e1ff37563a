"""
Lifecycle job: reserved -> active on start_date, active -> completed on returned_at,
one notification per transition, and a second run that changes nothing.
"""

from datetime import timedelta

import pytest

from conftest import NOW, notifications_of
from rentcycle.exceptions import StoreUnavailableError
from rentcycle.services.lifecycle_service import is_vehicle_available
from rentcycle.services.runner import JobRun
from rentcycle.utils.constants import JobName, Level, NotificationCategory, Priority, RentStatus


def test_reserved_rent_starts_and_owner_is_notified(engine, store, mailer, make_rent):
    rid = make_rent(status=RentStatus.RESERVED, start_date=NOW - timedelta(minutes=1),
                    expected_end_date=NOW + timedelta(days=3))

    report = engine.run(JobName.LIFECYCLE, now=NOW)

    assert report.ok
    assert report.affected == [rid]
    assert store.get_rent(rid)["status"] == RentStatus.ACTIVE
    (n,) = notifications_of(store, "RENT_STARTED")
    assert n["priority"] == Priority.MEDIUM
    assert n["level"] == Level.INFO
    assert n["category"] == NotificationCategory.RENTAL
    assert n["action_url"] == f"/rentals/{rid}"
    assert n["metadata"]["rentalId"] == rid
    assert n["metadata"]["rentContractId"] == "001/2025"
    assert n["message"] == "Rental #001/2025 has started"
    assert n["email_sent"] is True
    assert mailer.sent[0]["recipients"] == ["owner@example.com"]
    assert mailer.sent[0]["subject"] == "Rental Started - Contract #001/2025"


def test_returned_rent_completes_with_success_level(engine, store, make_rent):
    rid = make_rent(returned_at=NOW - timedelta(minutes=5))

    report = engine.run(JobName.LIFECYCLE, now=NOW)

    assert report.affected == [rid]
    assert store.get_rent(rid)["status"] == RentStatus.COMPLETED
    (n,) = notifications_of(store, "RENT_COMPLETED")
    assert n["level"] == Level.SUCCESS
    assert n["priority"] == Priority.MEDIUM


def test_second_run_is_a_no_op(engine, store, mailer, make_rent):
    make_rent(status=RentStatus.RESERVED, start_date=NOW - timedelta(hours=1))
    make_rent(returned_at=NOW - timedelta(hours=1))

    first = engine.run(JobName.LIFECYCLE, now=NOW)
    second = engine.run(JobName.LIFECYCLE, now=NOW + timedelta(minutes=1))

    assert len(first.affected) == 2
    assert second.affected == []
    assert second.notified == 0
    assert len(store.notifications) == 2
    assert len(mailer.sent) == 2


def test_future_reservation_and_future_return_are_left_alone(engine, store, make_rent):
    reserved = make_rent(status=RentStatus.RESERVED, start_date=NOW + timedelta(hours=2))
    active = make_rent(returned_at=NOW + timedelta(hours=2))

    report = engine.run(JobName.LIFECYCLE, now=NOW)

    assert report.affected == []
    assert store.get_rent(reserved)["status"] == RentStatus.RESERVED
    assert store.get_rent(active)["status"] == RentStatus.ACTIVE
    assert store.notifications == {}


def test_deleted_and_canceled_rents_are_never_transitioned(engine, store, make_rent):
    deleted = make_rent(status=RentStatus.RESERVED, start_date=NOW - timedelta(hours=1),
                        is_deleted=True)
    canceled = make_rent(status=RentStatus.CANCELED, start_date=NOW - timedelta(hours=1),
                         returned_at=NOW - timedelta(minutes=1))

    engine.run(JobName.LIFECYCLE, now=NOW)

    assert store.get_rent(deleted)["status"] == RentStatus.RESERVED
    assert store.get_rent(canceled)["status"] == RentStatus.CANCELED
    assert store.notifications == {}


def test_reservation_returned_before_tick_starts_and_completes_in_one_run(engine, store, make_rent):
    rid = make_rent(status=RentStatus.RESERVED, start_date=NOW - timedelta(minutes=3),
                    returned_at=NOW - timedelta(minutes=1))

    engine.run(JobName.LIFECYCLE, now=NOW)
    # Bulk updates run in order, so the freshly active rent is completed in the same run.
    assert store.get_rent(rid)["status"] == RentStatus.COMPLETED
    types = sorted(n["type"] for n in store.notifications.values())
    assert types == ["RENT_COMPLETED", "RENT_STARTED"]


def test_missing_owner_skips_notification_but_keeps_transition(engine, store, make_rent):
    orphan_org = store.create_organization("Ghost", "no-such-user")
    rid = make_rent(org_id=orphan_org, status=RentStatus.RESERVED,
                    start_date=NOW - timedelta(minutes=1))

    report = engine.run(JobName.LIFECYCLE, now=NOW)

    assert store.get_rent(rid)["status"] == RentStatus.ACTIVE
    assert report.skipped == 1
    assert report.failed == 0
    assert store.notifications == {}


def test_email_failure_still_records_notification(engine, store, mailer, make_rent):
    mailer.fail = True
    make_rent(status=RentStatus.RESERVED, start_date=NOW - timedelta(minutes=1))

    report = engine.run(JobName.LIFECYCLE, now=NOW)

    assert report.ok
    assert report.notified == 1
    (n,) = notifications_of(store, "RENT_STARTED")
    assert n["email_sent"] is False


def test_store_outage_aborts_run_and_rolls_back(engine, store, make_rent, monkeypatch):
    rid = make_rent(status=RentStatus.RESERVED, start_date=NOW - timedelta(minutes=1))

    def broken_dump():
        raise StoreUnavailableError("disk gone")

    monkeypatch.setattr(store, "_dump", broken_dump)
    report = engine.run(JobName.LIFECYCLE, now=NOW)

    assert report.error is not None
    assert not report.ok
    assert store.get_rent(rid)["status"] == RentStatus.RESERVED
    assert store.notifications == {}


def test_double_booking_is_flagged_in_metadata(engine, store, make_rent):
    running = make_rent(start_date=NOW - timedelta(days=1))
    incoming = make_rent(status=RentStatus.RESERVED, start_date=NOW - timedelta(minutes=1))

    engine.run(JobName.LIFECYCLE, now=NOW)

    assert store.get_rent(incoming)["status"] == RentStatus.ACTIVE
    (n,) = notifications_of(store, "RENT_STARTED")
    assert n["metadata"]["conflictingRentIds"] == [running]


@pytest.mark.parametrize("status", [RentStatus.RESERVED, RentStatus.ACTIVE])
def test_transitions_only_touch_matching_status(engine, store, make_rent, status):
    rid = make_rent(status=status, start_date=NOW + timedelta(days=1))
    engine.run(JobName.LIFECYCLE, now=NOW)
    assert store.get_rent(rid)["status"] == status


def test_vehicle_availability_follows_active_windows(store, vehicle, make_rent):
    assert is_vehicle_available(store, vehicle, NOW)

    rid = make_rent(start_date=NOW - timedelta(days=1))
    assert not is_vehicle_available(store, vehicle, NOW)

    store.update_rent(rid, {"returned_at": NOW - timedelta(minutes=1)})
    assert is_vehicle_available(store, vehicle, NOW)
    assert not is_vehicle_available(store, vehicle, NOW - timedelta(hours=1))


def test_timeout_before_any_update_leaves_rents_untouched(engine, store, make_rent, monkeypatch):
    rid = make_rent(returned_at=NOW - timedelta(minutes=5))
    monkeypatch.setattr(JobRun, "expired", lambda self: True)

    report = engine.run(JobName.LIFECYCLE, now=NOW)

    assert report.timed_out
    assert store.get_rent(rid)["status"] == RentStatus.ACTIVE
    assert store.notifications == {}

    monkeypatch.undo()
    engine.run(JobName.LIFECYCLE, now=NOW)
    assert store.get_rent(rid)["status"] == RentStatus.COMPLETED
    assert len(notifications_of(store, "RENT_COMPLETED")) == 1


def test_timeout_between_updates_still_notifies_started_rents(engine, store, make_rent, monkeypatch):
    starting = make_rent(status=RentStatus.RESERVED, start_date=NOW - timedelta(minutes=1))
    returned = make_rent(start_date=NOW - timedelta(days=2), returned_at=NOW - timedelta(minutes=5))
    checks = []

    def expires_after_first_check(self):
        checks.append(1)
        return len(checks) > 1

    monkeypatch.setattr(JobRun, "expired", expires_after_first_check)
    report = engine.run(JobName.LIFECYCLE, now=NOW)

    assert report.timed_out
    assert report.affected == [starting]
    assert store.get_rent(starting)["status"] == RentStatus.ACTIVE
    assert len(notifications_of(store, "RENT_STARTED")) == 1
    assert store.get_rent(returned)["status"] == RentStatus.ACTIVE

    monkeypatch.undo()
    engine.run(JobName.LIFECYCLE, now=NOW)
    assert store.get_rent(returned)["status"] == RentStatus.COMPLETED
    assert len(notifications_of(store, "RENT_STARTED")) == 1
    assert len(notifications_of(store, "RENT_COMPLETED")) == 1


def test_naive_start_date_is_treated_as_utc(engine, store, make_rent):
    naive = make_rent(status=RentStatus.RESERVED,
                      start_date=(NOW - timedelta(minutes=1)).replace(tzinfo=None))
    aware = make_rent(status=RentStatus.RESERVED, start_date=NOW - timedelta(minutes=2))

    report = engine.run(JobName.LIFECYCLE, now=NOW)

    assert report.ok
    assert sorted(report.affected) == sorted([naive, aware])
    assert store.get_rent(naive)["start_date"].tzinfo is not None


def test_unreadable_start_date_skips_only_that_rent(engine, store, make_rent):
    good = make_rent(status=RentStatus.RESERVED, start_date=NOW - timedelta(minutes=1))
    bad = make_rent(status=RentStatus.RESERVED, start_date=NOW - timedelta(minutes=1))
    store.rents[bad]["start_date"] = "yesterday-ish"

    report = engine.run(JobName.LIFECYCLE, now=NOW)

    assert report.ok
    assert report.affected == [good]
    assert store.get_rent(bad)["status"] == RentStatus.RESERVED
