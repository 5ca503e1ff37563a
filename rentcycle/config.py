"""Default configuration. Override with RENTCYCLE_* env vars or create_app(config)."""

import os

from rentcycle.models.store import DEFAULT_DATA_PATH
from rentcycle.utils.constants import (
    DEFAULT_LOCALE,
    INSURANCE_WINDOW_DAYS,
    REMINDER_HORIZONS,
    RETENTION_DAYS,
    RepeatPolicy,
)


class Config:
    SECRET_KEY = "dev-secret-change-me"
    DATA_PATH = str(DEFAULT_DATA_PATH)
    TIMEZONE = "UTC"
    DEFAULT_LOCALE = DEFAULT_LOCALE
    APP_BASE_URL = "http://localhost:5173"
    LOG_LEVEL = "INFO"

    # Email
    EMAIL_ENABLED = True
    SMTP_HOST = None
    SMTP_PORT = 587
    SMTP_USER = None
    SMTP_PASS = None
    SMTP_USE_TLS = True
    FROM_EMAIL = None

    # Jobs
    SCHEDULER_ENABLED = True
    JOB_TIMEOUT_SECONDS = 50
    REMINDER_HOUR = 9
    REMINDER_BUCKET_ANCHOR = "run"  # or "midnight"
    INSURANCE_HOUR = 8
    REMINDER_HORIZONS = REMINDER_HORIZONS
    INSURANCE_WINDOW_DAYS = INSURANCE_WINDOW_DAYS
    RETENTION_DAYS = RETENTION_DAYS
    RETENTION_READ_ONLY = True
    OVERDUE_REPEAT_POLICY = RepeatPolicy.DAILY
    REMINDER_REPEAT_POLICY = RepeatPolicy.ONCE
    INSURANCE_REPEAT_POLICY = RepeatPolicy.DAILY


class TestConfig(Config):
    __test__ = False

    TESTING = True
    EMAIL_ENABLED = False
    SCHEDULER_ENABLED = False
    DATA_PATH = os.path.join(os.getenv("TMPDIR", "/tmp"), "rentcycle-test.pkl")
