"""Per-run bookkeeping shared by every scheduled job."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Iterator, Optional

from rentcycle.exceptions import (
    InvalidNotificationError,
    OwnerNotFoundError,
)
from rentcycle.services.common import _now, local_today
from rentcycle.utils.constants import RepeatPolicy

logger = logging.getLogger(__name__)

# Lookup/validation problems that skip a row rather than count as failures.
ROW_SKIP_ERRORS = (
    OwnerNotFoundError,
    InvalidNotificationError,
)


@dataclass
class JobReport:
    job: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    affected: list = field(default_factory=list)
    notified: int = 0
    skipped: int = 0
    failed: int = 0
    timed_out: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out


class JobRun:
    """
    One execution of a job: holds the run's `now`, its deadline and counters.
    Rows are processed through `each()` and `row()` so that a slow run stops
    at its deadline and a bad row never takes siblings down with it.
    """

    def __init__(self, job: str, now: datetime, timeout: Optional[float] = None,
                 clock=time.monotonic):
        self.job = job
        self.now = now
        self.report = JobReport(job=job, started_at=now)
        self._clock = clock
        self._deadline = clock() + timeout if timeout else None

    def expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def out_of_time(self) -> bool:
        """True once the deadline has passed; flags the report the first time."""
        if not self.expired():
            return False
        if not self.report.timed_out:
            self.report.timed_out = True
            logger.error("[%s] run exceeded its time budget; remaining rows left for next tick",
                         self.job)
        return True

    def each(self, rows: Iterable) -> Iterator:
        for item in rows:
            if self.out_of_time():
                return
            yield item

    @contextmanager
    def row(self, row_id: str):
        try:
            yield
        except ROW_SKIP_ERRORS as e:
            self.report.skipped += 1
            logger.warning("[%s] skipped %s: %s", self.job, row_id, e)
        except Exception:
            self.report.failed += 1
            logger.exception("[%s] failed processing %s", self.job, row_id)

    def notified(self, nid: Optional[str]) -> None:
        if nid:
            self.report.notified += 1


def dedupe_key(policy: str, event_type: str, subject_id: str, now: datetime,
               tz_name: str = "UTC", scope=None) -> Optional[str]:
    """
    Key that makes the notification sink refuse repeats under `policy`.
    ALWAYS -> no key; ONCE -> per subject (+scope); DAILY -> also per local day.
    """
    if policy == RepeatPolicy.ALWAYS:
        return None
    if policy not in RepeatPolicy.ALL:
        raise ValueError(f"Unknown repeat policy: {policy!r}")
    parts = [event_type, str(subject_id)]
    if scope is not None:
        parts.append(str(scope))
    if policy == RepeatPolicy.DAILY:
        parts.append(local_today(now, tz_name).isoformat())
    return ":".join(parts)


class BaseJob:
    """Collaborators and settings common to all jobs."""

    name = "job"

    def __init__(self, store, notifier, settings: Optional[dict] = None):
        self.store = store
        self.notifier = notifier
        self.settings = settings or {}

    @property
    def timeout(self) -> Optional[float]:
        return self.settings.get("JOB_TIMEOUT_SECONDS")

    @property
    def tz_name(self) -> str:
        return self.settings.get("TIMEZONE", "UTC")

    def now(self) -> datetime:
        return _now()
