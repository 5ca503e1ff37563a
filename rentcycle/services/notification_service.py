"""Notification sink: create, query, mark and sweep per-user notifications."""

import logging
import math
from collections import Counter
from datetime import timedelta
from typing import Optional

from rentcycle.models.notification import NotificationPreferences, validate_payload
from rentcycle.models.store import Store
from rentcycle.services.common import _now
from rentcycle.utils.constants import NotificationCategory, RETENTION_DAYS

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Durable notification log backed by the Store.
    Validation failures raise InvalidNotificationError for that one record.
    """

    def __init__(self, store: Store):
        self.store = store

    # --------------- preferences ---------------
    def get_preferences(self, user_id: str) -> NotificationPreferences:
        raw = self.store.get_preferences(user_id)
        prefs = NotificationPreferences()
        if raw:
            prefs.email_enabled = bool(raw.get("email_enabled", True))
            prefs.categories.update(raw.get("categories") or {})
        return prefs

    def update_preferences(self, user_id: str, email_enabled: Optional[bool] = None,
                           categories: Optional[dict] = None) -> NotificationPreferences:
        prefs = self.get_preferences(user_id)
        if email_enabled is not None:
            prefs.email_enabled = email_enabled
        if categories:
            unknown = set(categories) - set(NotificationCategory.ALL)
            if unknown:
                raise ValueError(f"Unknown categories: {sorted(unknown)}")
            prefs.categories.update({k: bool(v) for k, v in categories.items()})
        self.store.set_preferences(user_id, {
            "email_enabled": prefs.email_enabled,
            "categories": dict(prefs.categories),
        })
        return prefs

    # --------------- commands ---------------
    def create_notification(self, payload: dict) -> Optional[str]:
        """
        Validate and record a notification. Returns its id, or None when the
        user's preferences mute the category or the dedupe_key already exists.
        """
        data = validate_payload(payload)

        prefs = self.get_preferences(data["user_id"])
        if not prefs.allows(data["category"]):
            logger.debug("Category %s disabled for user %s", data["category"], data["user_id"])
            return None

        data.update({
            "read": False,
            "read_at": None,
            "dismissed": False,
            "email_sent": False,
            "created_at": _now(),
        })
        nid = self.store.insert_notification(data)
        if nid is None:
            logger.debug("Duplicate notification suppressed: %s", data["dedupe_key"])
            return None
        logger.debug("Notification created: %s for user %s", nid, data["user_id"])
        return nid

    def mark_email_sent(self, notification_id: str) -> bool:
        return self.store.update_notifications(
            lambda n: n.get("notification_id") == notification_id, {"email_sent": True}) > 0

    def mark_as_read(self, notification_id: str, user_id: str) -> bool:
        return self.store.update_notifications(
            lambda n: n.get("notification_id") == notification_id and n.get("user_id") == user_id,
            {"read": True, "read_at": _now()}) > 0

    def mark_all_as_read(self, user_id: str) -> int:
        return self.store.update_notifications(
            lambda n: n.get("user_id") == user_id and not n.get("read"),
            {"read": True, "read_at": _now()})

    def dismiss(self, notification_id: str, user_id: str) -> bool:
        return self.store.update_notifications(
            lambda n: n.get("notification_id") == notification_id and n.get("user_id") == user_id,
            {"dismissed": True}) > 0

    def cleanup_old_notifications(self, days: int = RETENTION_DAYS, read_only: bool = True,
                                  now=None) -> list[str]:
        """Delete notifications created more than `days` ago (only read ones by default)."""
        cutoff = (now or _now()) - timedelta(days=days)

        def expired(n):
            created = n.get("created_at")
            if created is None or created >= cutoff:
                return False
            return bool(n.get("read")) or not read_only

        deleted = self.store.delete_notifications(expired)
        logger.info("Cleaned up %d notification(s) older than %d days", len(deleted), days)
        return deleted

    # --------------- queries ---------------
    def get_user_notifications(self, user_id: str, category: Optional[str] = None,
                               unread: bool = False, priority: Optional[str] = None,
                               page: int = 1, limit: int = 20) -> dict:
        def visible(n):
            if n.get("user_id") != user_id or n.get("dismissed"):
                return False
            if category and n.get("category") != category:
                return False
            if unread and n.get("read"):
                return False
            if priority and n.get("priority") != priority:
                return False
            return True

        rows = self.store.find_notifications(visible)
        rows.sort(key=lambda n: n["created_at"], reverse=True)
        page = max(1, page)
        offset = (page - 1) * limit
        return {
            "data": rows[offset:offset + limit],
            "page": page,
            "limit": limit,
            "total": len(rows),
            "total_pages": math.ceil(len(rows) / limit) if limit else 0,
        }

    def get_summary(self, user_id: str) -> dict:
        rows = self.store.find_notifications(
            lambda n: n.get("user_id") == user_id and not n.get("dismissed"))
        unread = [n for n in rows if not n.get("read")]
        return {
            "total": len(rows),
            "unread": len(unread),
            "by_category": dict(Counter(n["category"] for n in unread)),
            "by_priority": dict(Counter(n["priority"] for n in unread)),
        }
