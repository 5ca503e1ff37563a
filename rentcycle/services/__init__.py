from .engine import Engine
from .insurance_service import InsuranceService
from .lifecycle_service import LifecycleService
from .notification_service import NotificationService
from .overdue_service import OverdueService
from .reminder_service import ReminderService
from .retention_service import RetentionService

__all__ = [
    "Engine",
    "LifecycleService",
    "OverdueService",
    "ReminderService",
    "InsuranceService",
    "RetentionService",
    "NotificationService",
]
