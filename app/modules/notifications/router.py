from fastapi import APIRouter, status, Query
from typing import List, Optional
from uuid import UUID

from app.dependencies.dbDependecies import db_dependency
from app.dependencies.userDependencies import admin_dependency
from app.modules.notifications.service import NotificationService
from app.modules.notifications.schemas import NotificationOut, UnreadCountOut, PurgeResult

notifications_router = APIRouter(prefix="/notifications", tags=["Notifications"])


@notifications_router.get("/", response_model=List[NotificationOut])
def list_notifications(
    db: db_dependency,
    auth_context: admin_dependency,
    limit: int = Query(50, ge=1, le=500)
):
    """Dernières notifications, les plus récentes d'abord"""
    return NotificationService(db).get_all(limit)


@notifications_router.get("/unread", response_model=List[NotificationOut])
def list_unread_notifications(
    db: db_dependency,
    auth_context: admin_dependency
):
    return NotificationService(db).get_unread()


@notifications_router.get("/unread/count", response_model=UnreadCountOut)
def count_unread_notifications(
    db: db_dependency,
    auth_context: admin_dependency
):
    return UnreadCountOut(count=NotificationService(db).unread_count())


@notifications_router.patch("/read-all", response_model=UnreadCountOut)
def mark_all_notifications_read(
    db: db_dependency,
    auth_context: admin_dependency
):
    """Marque tout comme lu; retourne le nombre de notifications modifiées"""
    return UnreadCountOut(count=NotificationService(db).mark_all_as_read())


@notifications_router.patch("/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: UUID,
    db: db_dependency,
    auth_context: admin_dependency
):
    return NotificationService(db).mark_as_read(notification_id)


@notifications_router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: UUID,
    db: db_dependency,
    auth_context: admin_dependency
):
    NotificationService(db).delete(notification_id)


@notifications_router.delete("/", response_model=PurgeResult)
def purge_notifications(
    db: db_dependency,
    auth_context: admin_dependency,
    days: Optional[int] = Query(None, ge=0)
):
    """
    Purge des notifications lues plus anciennes que `days` jours
    (par défaut NOTIFICATION_RETENTION_DAYS).
    """
    return PurgeResult(deleted=NotificationService(db).purge_old(days))
