import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from rentcycle.utils.constants import CONTRACT_ID_FMT, RentStatus

ONE_DAY = timedelta(days=1)

# Moves the engine itself is allowed to make. Cancellation happens outside.
ENGINE_TRANSITIONS = {
    RentStatus.RESERVED: RentStatus.ACTIVE,
    RentStatus.ACTIVE: RentStatus.COMPLETED,
}


@dataclass
class Rent:
    """
    A time-bound rental agreement. The Store keeps raw dicts; jobs wrap them
    into Rent objects to read dates and derive contract ids.
    """
    rent_id: str
    org_id: str
    vehicle_id: str
    customer_id: str
    start_date: datetime
    expected_end_date: Optional[datetime] = None  # None means open-ended
    returned_at: Optional[datetime] = None
    status: str = RentStatus.RESERVED
    rent_number: Optional[int] = None
    year: Optional[int] = None
    deposit: float = 0.0
    total_price: float = 0.0
    total_paid: float = 0.0
    is_fully_paid: bool = False
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    extra: dict = field(default_factory=dict)

    @property
    def contract_id(self) -> str:
        if self.rent_number is None or self.year is None:
            return self.rent_id
        return CONTRACT_ID_FMT.format(number=self.rent_number, year=self.year)

    @property
    def is_open_ended(self) -> bool:
        return self.expected_end_date is None

    def window_contains(self, instant: datetime) -> bool:
        """True if instant falls in [start_date, returned_at); no return means still open."""
        if instant < self.start_date:
            return False
        return self.returned_at is None or instant < self.returned_at


def derive_status(rent: Rent, now: datetime) -> str:
    """
    Status as a pure function of time and returned_at.
    Canceled is an external override and always wins.
    """
    if rent.status == RentStatus.CANCELED:
        return RentStatus.CANCELED
    if rent.window_contains(now):
        return RentStatus.ACTIVE
    return RentStatus.RESERVED if now < rent.start_date else RentStatus.COMPLETED


def is_engine_transition(old: str, new: str) -> bool:
    return ENGINE_TRANSITIONS.get(old) == new


def days_between_ceil(earlier: datetime, later: datetime) -> int:
    """Whole days from earlier to later, rounded up (1h counts as 1 day)."""
    return math.ceil((later - earlier) / ONE_DAY)


def days_overdue(rent: Rent, now: datetime) -> int:
    if rent.is_open_ended:
        return 0
    return max(0, days_between_ceil(rent.expected_end_date, now))
