"""Persisted in-app notifications. Delivery is best-effort."""

import logging

from sqlalchemy.orm import Session

from marketplace.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def notify(self, user_id: str, notification_type: NotificationType | str, title: str, body: str) -> None:
        """Store a notification for ``user_id``. Never raises."""
        type_value = notification_type.value if isinstance(notification_type, NotificationType) else notification_type
        try:
            self.db.add(Notification(user_id=user_id, type=type_value, title=title, body=body))
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception('Failed to store %s notification for user %s', type_value, user_id)
            return

        logger.info('[Notification] -> %s: %s', user_id, title)
