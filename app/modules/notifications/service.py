"""
Journal des notifications administrateur.

`notify` est appelé par les services métier après leur propre commit: un
échec ici (base ou broker) est journalisé et n'est jamais propagé.
"""
from datetime import timedelta
from typing import List, Optional
from uuid import UUID
import logging

from kombu.exceptions import OperationalError as BrokerError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.common.exceptions import NotFoundError
from app.common.mixins import utcnow
from app.modules.notifications.models import Notification, NotificationType
from app.modules.notifications.tasks import push_notification_task

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        notification_type: NotificationType,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[UUID] = None,
        triggered_by_id: Optional[UUID] = None
    ) -> Optional[Notification]:
        try:
            notification = Notification(
                type=notification_type,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=entity_id,
                triggered_by_id=triggered_by_id
            )
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning(f"Could not persist notification {notification_type.value}", exc_info=True)
            return None

        if settings.NOTIFICATIONS_PUSH_ENABLED:
            try:
                push_notification_task.delay(notification.to_payload())
            except (BrokerError, ConnectionError) as exc:
                logger.warning(f"Notification {notification.id} not pushed: {exc}")

        return notification

    def get_all(self, limit: int = 50) -> List[Notification]:
        return self.db.query(Notification).order_by(
            Notification.created_at.desc()
        ).limit(limit).all()

    def get_unread(self) -> List[Notification]:
        return self.db.query(Notification).filter(
            Notification.is_read.is_(False)
        ).order_by(Notification.created_at.desc()).all()

    def unread_count(self) -> int:
        return self.db.query(Notification).filter(Notification.is_read.is_(False)).count()

    def get_by_id(self, notification_id: UUID) -> Notification:
        notification = self.db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            raise NotFoundError("Notification", notification_id)
        return notification

    def mark_as_read(self, notification_id: UUID) -> Notification:
        notification = self.get_by_id(notification_id)
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_as_read(self) -> int:
        updated = self.db.query(Notification).filter(
            Notification.is_read.is_(False)
        ).update({Notification.is_read: True}, synchronize_session=False)
        self.db.commit()
        return updated

    def delete(self, notification_id: UUID) -> None:
        notification = self.get_by_id(notification_id)
        self.db.delete(notification)
        self.db.commit()

    def purge_old(self, days: Optional[int] = None) -> int:
        """Supprime les notifications lues plus anciennes que `days` jours"""
        days = settings.NOTIFICATION_RETENTION_DAYS if days is None else days
        cutoff = utcnow() - timedelta(days=days)
        deleted = self.db.query(Notification).filter(
            Notification.is_read.is_(True),
            Notification.created_at < cutoff
        ).delete(synchronize_session=False)
        self.db.commit()
        logger.info(f"Purged {deleted} notifications older than {days} days")
        return deleted
