import logging
from functools import wraps

from rentcycle.exceptions import StoreUnavailableError
from rentcycle.services.common import as_utc
from rentcycle.services.runner import JobRun

logger = logging.getLogger(__name__)


def scheduled_job(fn):
    """
    Turn `fn(self, run)` into `run(now=None) -> JobReport`.

    The wrapper builds the JobRun, applies the job's time budget and contains
    every failure: a store outage aborts this run only, and nothing escapes
    to the scheduler.
    """

    @wraps(fn)
    def wrapper(self, now=None):
        now = as_utc(now) if now is not None else self.now()
        run = JobRun(self.name, now, timeout=self.timeout)
        try:
            fn(self, run)
        except StoreUnavailableError as e:
            run.report.error = str(e)
            logger.error("[%s] store unavailable, run aborted: %s", self.name, e)
        except Exception as e:
            run.report.error = repr(e)
            logger.exception("[%s] run aborted", self.name)
        finally:
            run.report.finished_at = as_utc(self.now())
        report = run.report
        logger.info(
            "[%s] affected=%d notified=%d skipped=%d failed=%d%s",
            self.name, len(report.affected), report.notified, report.skipped, report.failed,
            " (timed out)" if report.timed_out else "")
        return report

    return wrapper
