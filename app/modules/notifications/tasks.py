"""
Tâches Celery des notifications: diffusion temps réel et purge.
"""
import json
import logging
from typing import Any, Dict

import redis

from app.core.celery import celery_app
from app.core.config import settings
from app.database.database import SessionLocal

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def push_notification_task(self, payload: Dict[str, Any]):
    """
    Publie la notification sur le canal Redis écouté par la passerelle temps réel.
    """
    try:
        client = redis.Redis.from_url(settings.redis_url)
        receivers = client.publish(settings.NOTIFICATIONS_CHANNEL, json.dumps(payload))
        logger.info(f"Notification {payload.get('id')} published to {receivers} subscriber(s)")
        return {"status": "success", "receivers": receivers}

    except redis.RedisError as exc:
        logger.error(f"Notification publish failed: {str(exc)}")

        if self.request.retries < self.max_retries:
            raise self.retry(exc=exc, countdown=10 * (2 ** self.request.retries))

        return {"status": "failed", "error": str(exc)}


@celery_app.task
def purge_old_notifications_task():
    """
    Tâche périodique: purge des notifications lues trop anciennes.
    """
    from app.modules.notifications.service import NotificationService

    db = SessionLocal()
    try:
        deleted = NotificationService(db).purge_old()
        return {"status": "completed", "deleted": deleted}
    finally:
        db.close()
