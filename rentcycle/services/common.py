"""Shared service helpers and factories."""

from datetime import datetime, date, time, timedelta, timezone
from typing import Optional

import pytz

from rentcycle.models.rent import Rent
from rentcycle.models.store import Store
from rentcycle.models.user import Customer, User
from rentcycle.models.vehicle import Vehicle
from rentcycle.utils.constants import RentStatus, VehicleStatus
from rentcycle.utils.filters import as_utc

DEFAULT_TIMEZONE = "UTC"


def _store(path=None) -> Store:
    """Get the singleton store instance."""
    return Store.instance(path)


# -------- clock & calendar helpers --------
def _now() -> datetime:
    """Wrapper for easier testing/mocking. Always timezone-aware UTC."""
    return datetime.now(timezone.utc)


def local_today(now: datetime, tz_name: str = DEFAULT_TIMEZONE) -> date:
    """Calendar date of `now` in the given timezone."""
    return as_utc(now).astimezone(pytz.timezone(tz_name)).date()


def local_midnight(day: date, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """00:00 of `day` in tz_name, expressed in UTC (DST-correct via pytz.localize)."""
    tz = pytz.timezone(tz_name)
    return tz.localize(datetime.combine(day, time.min)).astimezone(timezone.utc)


def day_bucket(now: datetime, days_ahead: int, tz_name: str = DEFAULT_TIMEZONE) -> tuple[datetime, datetime]:
    """
    Half-open UTC range [today+days_ahead, today+days_ahead+1) where `today`
    is the local calendar day of `now`.
    """
    target = local_today(now, tz_name) + timedelta(days=days_ahead)
    return local_midnight(target, tz_name), local_midnight(target + timedelta(days=1), tz_name)


# -------- dict -> rich model mappers --------
def rent_from_dict(d: Optional[dict]) -> Optional[Rent]:
    """Map a stored rent dict to a Rent object."""
    if not d:
        return None
    known = {
        "rent_id", "org_id", "vehicle_id", "customer_id", "start_date",
        "expected_end_date", "returned_at", "status", "rent_number", "year",
        "deposit", "total_price", "total_paid", "is_fully_paid", "is_deleted",
        "created_at",
    }
    return Rent(
        rent_id=d.get("rent_id") or d.get("id"),
        org_id=d.get("org_id"),
        vehicle_id=d.get("vehicle_id"),
        customer_id=d.get("customer_id"),
        start_date=d.get("start_date"),
        expected_end_date=d.get("expected_end_date"),
        returned_at=d.get("returned_at"),
        status=d.get("status") or RentStatus.RESERVED,
        rent_number=d.get("rent_number"),
        year=d.get("year"),
        deposit=float(d.get("deposit") or 0.0),
        total_price=float(d.get("total_price") or 0.0),
        total_paid=float(d.get("total_paid") or 0.0),
        is_fully_paid=bool(d.get("is_fully_paid")),
        is_deleted=bool(d.get("is_deleted")),
        created_at=d.get("created_at"),
        extra={k: v for k, v in d.items() if k not in known},
    )


def vehicle_from_dict(d: Optional[dict]) -> Optional[Vehicle]:
    """Map a stored vehicle dict to a Vehicle object."""
    if not d:
        return None
    return Vehicle(
        vehicle_id=d.get("vehicle_id") or d.get("id"),
        org_id=d.get("org_id"),
        make=d.get("make") or "",
        model=d.get("model") or "",
        year=d.get("year"),
        insurance_expiry_date=d.get("insurance_expiry_date"),
        status=(d.get("status") or VehicleStatus.ACTIVE).lower(),
    )


def user_from_dict(d: Optional[dict]) -> Optional[User]:
    if not d:
        return None
    return User(
        user_id=d.get("user_id") or d.get("id"),
        name=d.get("name") or "",
        email=d.get("email"),
        locale=d.get("locale"),
    )


def customer_from_dict(d: Optional[dict]) -> Optional[Customer]:
    if not d:
        return None
    return Customer(
        customer_id=d.get("customer_id") or d.get("id"),
        first_name=d.get("first_name") or "",
        last_name=d.get("last_name") or "",
        phone=d.get("phone"),
        email=d.get("email"),
    )
