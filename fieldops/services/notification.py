"""
Notification Dispatcher — in-app notifications for workflow outcomes.

Two halves:

  NotificationService     stateless create / query / read-tracking helpers
  NotificationDispatcher  maps an accepted transition to at most one
                          notification via a fixed allow-list of rules keyed
                          by (family, event_type, next_status)

The dispatcher runs after the transition has committed.  It is never retried;
the engine logs and swallows its failures.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from fieldops.core.exceptions import Forbidden, InvalidPayload, NotFoundError
from fieldops.models import db
from fieldops.models.auth import User
from fieldops.models.notification import NOTIFICATION_TYPES, Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationRule:
    """One allow-listed notification: fires on (event_type → next_status)."""

    event_type: str
    next_status: str
    title: str
    message: Callable
    type: str
    link: str | None = None


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def notify(target_user_id, title, message="", type="info", link=None,
               family=None, item_id=None):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (already committed).
        """
        if type not in NOTIFICATION_TYPES:
            raise InvalidPayload("Invalid notification type", details={"type": type})
        notif = Notification(
            user_id=target_user_id,
            title=title,
            message=message,
            type=type,
            link=link,
            family=family,
            item_id=item_id,
        )
        db.session.add(notif)
        db.session.commit()
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id, unread_only=False, limit=50, offset=0):
        """
        Retrieve notifications for a user, newest first.
        """
        q = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            q = q.filter_by(read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def unread_count(user_id):
        """Return count of unread notifications."""
        return Notification.query.filter_by(user_id=user_id, read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(actor, notification_id):
        """Mark a single notification as read.  Only its target may do so."""
        notif = db.session.get(Notification, notification_id)
        if notif is None:
            raise NotFoundError("Notification", notification_id)
        if notif.user_id != actor.id:
            raise Forbidden("Notification belongs to another user")
        if not notif.read:
            notif.mark_read()
            db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(actor):
        """Mark all of the actor's notifications as read."""
        now = datetime.now(timezone.utc)
        count = (
            Notification.query
            .filter_by(user_id=actor.id, read=False)
            .update({"read": True, "read_at": now}, synchronize_session="fetch")
        )
        db.session.commit()
        return count


class NotificationDispatcher:
    """Turns accepted transitions into notifications for the item's creator."""

    def __init__(self, rules: dict, email_sender=None, send_email: bool = False):
        # rules: {(family, event_type, next_status): NotificationRule}
        self.rules = rules
        self.email_sender = email_sender
        self.send_email = send_email

    def rule_for(self, family: str, event_type: str, next_status: str | None):
        return self.rules.get((family, event_type, next_status))

    def dispatch(self, result):
        """Create the notification for *result*, if an allow-listed rule matches."""
        rule = self.rule_for(result.family, result.event_type, result.next_status)
        if rule is None:
            return None

        item = result.item
        notif = NotificationService.notify(
            item.created_by_user_id,
            rule.title,
            rule.message(item),
            type=rule.type,
            link=rule.link,
            family=result.family,
            item_id=item.id,
        )
        logger.info(
            "Notification %s sent to user %s", notif.id, notif.user_id,
            extra={"family": result.family, "item_id": item.id, "event_type": result.event_type},
        )

        if self.send_email and self.email_sender is not None:
            self._email(notif)
        return notif

    def _email(self, notif):
        user = db.session.get(User, notif.user_id)
        if user is None or not user.email:
            return
        try:
            self.email_sender.send_email(
                "workflow_notification",
                user.email,
                {
                    "title": notif.title,
                    "message": notif.message,
                    "link": notif.link,
                    "family": notif.family,
                    "item_id": notif.item_id,
                },
            )
        except Exception:
            logger.warning("Email delivery failed for notification %s", notif.id, exc_info=True)
