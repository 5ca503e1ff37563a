import json
from dataclasses import dataclass, field

from rentcycle.exceptions import InvalidNotificationError
from rentcycle.utils.constants import Level, NotificationCategory, Priority


@dataclass
class NotificationPreferences:
    """Per-user switches: email on/off and one flag per category."""
    email_enabled: bool = True
    categories: dict = field(
        default_factory=lambda: {c: True for c in NotificationCategory.ALL})

    def allows(self, category: str) -> bool:
        return bool(self.categories.get(category, True))


def validate_payload(payload: dict) -> dict:
    """
    Check and normalize a create-notification payload.
    Raises InvalidNotificationError; never touches the store.
    """
    if not isinstance(payload, dict):
        raise InvalidNotificationError("Notification payload must be a mapping")

    user_id = payload.get("user_id")
    if not user_id:
        raise InvalidNotificationError("Notification requires a user_id")

    category = payload.get("category")
    if category not in NotificationCategory.ALL:
        raise InvalidNotificationError(f"Unknown notification category: {category!r}")

    ntype = payload.get("type")
    if not isinstance(ntype, str) or not ntype:
        raise InvalidNotificationError("Notification requires a type")

    priority = payload.get("priority") or Priority.MEDIUM
    if priority not in Priority.ALL:
        raise InvalidNotificationError(f"Unknown priority: {priority!r}")

    level = payload.get("level") or Level.INFO
    if level not in Level.ALL:
        raise InvalidNotificationError(f"Unknown level: {level!r}")

    for key in ("title", "message"):
        value = payload.get(key)
        if not isinstance(value, str) or not value.strip():
            raise InvalidNotificationError(f"Notification {key} must be a non-empty string")

    metadata = payload.get("metadata")
    if metadata is not None:
        if not isinstance(metadata, dict):
            raise InvalidNotificationError("Notification metadata must be an object")
        try:
            json.dumps(metadata)
        except (TypeError, ValueError) as e:
            raise InvalidNotificationError(f"Notification metadata is not JSON-serializable: {e}")

    return {
        "user_id": str(user_id),
        "org_id": payload.get("org_id"),
        "category": category,
        "type": ntype,
        "priority": priority,
        "level": level,
        "title": payload["title"],
        "message": payload["message"],
        "action_url": payload.get("action_url"),
        "action_label": payload.get("action_label"),
        "metadata": metadata,
        "expires_at": payload.get("expires_at"),
        "dedupe_key": payload.get("dedupe_key"),
    }
