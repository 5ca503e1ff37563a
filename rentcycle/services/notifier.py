"""Fan an engine event out to the organization owner: compose, record, email."""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from rentcycle.exceptions import EmailDispatchError, OwnerNotFoundError, StoreUnavailableError
from rentcycle.models.store import Store
from rentcycle.services.common import user_from_dict
from rentcycle.services.composer import Composer
from rentcycle.services.email_service import EmailService
from rentcycle.services.notification_service import NotificationService
from rentcycle.utils.constants import Level, Priority

logger = logging.getLogger(__name__)


@dataclass
class Alert:
    org_id: str
    event_type: str
    category: str
    priority: str = Priority.MEDIUM
    level: str = Level.INFO
    action_url: Optional[str] = None
    metadata: Optional[dict] = None
    context: dict = field(default_factory=dict)
    variants: Sequence[str] = ()
    dedupe_key: Optional[str] = None


class OwnerNotifier:
    """
    Resolves the owner once per alert, composes copy in the owner's locale,
    records the notification, then sends the email best-effort.
    """

    def __init__(self, store: Store, sink: NotificationService, composer: Composer,
                 mailer: EmailService):
        self.store = store
        self.sink = sink
        self.composer = composer
        self.mailer = mailer

    def notify(self, alert: Alert) -> Optional[str]:
        """
        Returns the new notification id, or None if it was suppressed.
        Raises OwnerNotFoundError / InvalidNotificationError for this alert only.
        """
        owner = user_from_dict(self.store.get_org_owner(alert.org_id))
        if owner is None:
            raise OwnerNotFoundError(f"No owner for organization {alert.org_id}")

        locale = owner.locale_or(self.composer.default_locale)
        context = dict(alert.context, owner_name=owner.name)
        comp = self.composer.compose(alert.event_type, locale, context,
                                     variants=alert.variants, action_url=alert.action_url)

        payload = {
            "user_id": owner.user_id,
            "org_id": alert.org_id,
            "category": alert.category,
            "type": alert.event_type,
            "priority": alert.priority,
            "level": alert.level,
            "title": comp.title,
            "message": comp.message,
            "action_url": alert.action_url,
            "action_label": comp.action_label,
            "metadata": alert.metadata,
            "dedupe_key": alert.dedupe_key,
        }
        logger.debug("Notification payload for %s: %s", alert.event_type, payload)
        nid = self.sink.create_notification(payload)
        if nid is None:
            return None

        self._send_email(owner, comp, nid)
        return nid

    def _send_email(self, owner, comp, nid: str) -> None:
        if not comp.has_email:
            logger.warning("No email for notification %s (copy unresolved for %s)", nid, comp.locale)
            return
        if not owner.email:
            logger.debug("Owner %s has no email address; skipping", owner.user_id)
            return
        if not self.sink.get_preferences(owner.user_id).email_enabled:
            return
        try:
            delivery_id = self.mailer.send_email(
                [owner.email], comp.email_subject, comp.email_html, comp.email_text)
            if delivery_id:
                self.sink.mark_email_sent(nid)
        except EmailDispatchError as e:
            logger.error("Email for notification %s failed: %s", nid, e)
        except StoreUnavailableError as e:
            logger.error("Could not flag notification %s as emailed: %s", nid, e)
