# rentcycle/utils/constants.py

"""
Global constants for statuses, notification vocabulary and job defaults.
These constants are imported by models, services and jobs.
"""

# Contract ids render as "001/2025"
CONTRACT_ID_FMT = "{number:03d}/{year}"


class RentStatus:
    RESERVED = "reserved"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELED = "canceled"

    ALL = (RESERVED, ACTIVE, COMPLETED, CANCELED)


class VehicleStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class NotificationCategory:
    RENTAL = "RENTAL"
    PAYMENT = "PAYMENT"
    CUSTOMER = "CUSTOMER"
    CAR = "CAR"
    MAINTENANCE = "MAINTENANCE"
    FINANCIAL = "FINANCIAL"
    SYSTEM = "SYSTEM"

    ALL = (RENTAL, PAYMENT, CUSTOMER, CAR, MAINTENANCE, FINANCIAL, SYSTEM)


class NotificationType:
    RENT_STARTED = "RENT_STARTED"
    RENT_COMPLETED = "RENT_COMPLETED"
    RENT_OVERDUE = "RENT_OVERDUE"
    RENT_RETURN_REMINDER = "RENT_RETURN_REMINDER"
    CAR_INSURANCE_EXPIRING = "CAR_INSURANCE_EXPIRING"


class Priority:
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    ALL = (LOW, MEDIUM, HIGH, URGENT)


class Level:
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    ALL = (INFO, SUCCESS, WARNING, ERROR)


class RepeatPolicy:
    ALWAYS = "always"  # every run that still matches
    DAILY = "daily"  # once per local calendar day
    ONCE = "once"  # once per rent/horizon or vehicle/expiry date

    ALL = (ALWAYS, DAILY, ONCE)


class JobName:
    LIFECYCLE = "lifecycle"
    OVERDUE = "overdue"
    REMINDERS = "reminders"
    INSURANCE = "insurance"
    RETENTION = "retention"

    ALL = (LIFECYCLE, OVERDUE, REMINDERS, INSURANCE, RETENTION)


# --- Defaults ---
DEFAULT_LOCALE = "en"
SUPPORTED_LOCALES = ("en", "fr", "ar")
REMINDER_HORIZONS = (3, 2, 1)
INSURANCE_WINDOW_DAYS = 30
RETENTION_DAYS = 30
