"""
Tests du module Notifications

- Enregistrement par les services métier
- Diffusion temps réel (tâche Celery) et tolérance aux pannes du broker
- Lecture, marquage et purge
"""

import pytest
from datetime import timedelta
from types import SimpleNamespace

from kombu.exceptions import OperationalError

from app.common.mixins import utcnow
from app.core.config import settings
from app.modules.notifications import service as notification_service
from app.modules.notifications.models import Notification, NotificationType
from app.modules.notifications.service import NotificationService


def _notify(db_session, title="Nouveau client", notification_type=NotificationType.CLIENT_CREATED):
    return NotificationService(db_session).notify(notification_type, title, f"{title} (test)")


@pytest.fixture
def pushed(monkeypatch):
    """Active la diffusion et capture les payloads envoyés à la tâche"""
    payloads = []
    monkeypatch.setattr(settings, "NOTIFICATIONS_PUSH_ENABLED", True)
    monkeypatch.setattr(
        notification_service, "push_notification_task", SimpleNamespace(delay=payloads.append)
    )
    return payloads


class TestNotify:
    """Création des notifications"""

    def test_persisted_unread(self, db_session):
        notification = _notify(db_session)
        assert notification.id is not None
        assert notification.is_read is False
        assert notification.created_at is not None

    def test_no_push_when_disabled(self, db_session, monkeypatch):
        calls = []
        monkeypatch.setattr(notification_service, "push_notification_task", SimpleNamespace(delay=calls.append))
        _notify(db_session)
        assert calls == []

    def test_push_payload(self, db_session, pushed):
        notification = _notify(db_session, "Paiement reçu", NotificationType.PAYMENT_RECEIVED)
        assert len(pushed) == 1
        assert pushed[0]["id"] == str(notification.id)
        assert pushed[0]["type"] == "PAYMENT_RECEIVED"
        assert pushed[0]["title"] == "Paiement reçu"

    def test_broker_down_does_not_fail(self, db_session, monkeypatch):
        def unreachable(payload):
            raise OperationalError("Connection refused")

        monkeypatch.setattr(settings, "NOTIFICATIONS_PUSH_ENABLED", True)
        monkeypatch.setattr(notification_service, "push_notification_task", SimpleNamespace(delay=unreachable))

        notification = _notify(db_session)
        assert notification is not None
        assert db_session.query(Notification).count() == 1

    def test_business_operations_notify(self, db_session, make_devis, sample_client):
        make_devis(sample_client)
        types = [n.type for n in db_session.query(Notification).all()]
        assert types == [NotificationType.DEVIS_CREATED]


class TestNotificationReading:
    """Lecture, marquage et suppression"""

    def test_unread_and_mark(self, db_session):
        first = _notify(db_session, "Premier")
        _notify(db_session, "Second")
        service = NotificationService(db_session)

        assert service.unread_count() == 2
        service.mark_as_read(first.id)
        assert service.unread_count() == 1
        assert [n.title for n in service.get_unread()] == ["Second"]

    def test_mark_all(self, db_session):
        for title in ("A", "B", "C"):
            _notify(db_session, title)
        service = NotificationService(db_session)
        assert service.mark_all_as_read() == 3
        assert service.unread_count() == 0

    def test_limit(self, db_session):
        for i in range(5):
            _notify(db_session, f"Notification {i}")
        assert len(NotificationService(db_session).get_all(limit=3)) == 3

    def test_purge_keeps_unread_and_recent(self, db_session):
        old_read = _notify(db_session, "Ancienne lue")
        old_unread = _notify(db_session, "Ancienne non lue")
        recent_read = _notify(db_session, "Récente lue")

        old_read.is_read = True
        old_read.created_at = utcnow() - timedelta(days=45)
        old_unread.created_at = utcnow() - timedelta(days=45)
        recent_read.is_read = True
        db_session.commit()

        assert NotificationService(db_session).purge_old(days=30) == 1
        titles = {n.title for n in db_session.query(Notification).all()}
        assert titles == {"Ancienne non lue", "Récente lue"}


class TestNotificationEndpoints:
    """Routes /notifications (admin)"""

    def test_employee_forbidden(self, api, employee_headers):
        assert api.get("/notifications/", headers=employee_headers).status_code == 403

    def test_read_flow(self, api, db_session, admin_headers):
        notification = _notify(db_session)

        assert api.get("/notifications/unread/count", headers=admin_headers).json()["count"] == 1

        response = api.patch(f"/notifications/{notification.id}/read", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["is_read"] is True

        assert api.get("/notifications/unread", headers=admin_headers).json() == []
        assert api.delete(f"/notifications/{notification.id}", headers=admin_headers).status_code == 204
        assert api.get("/notifications/", headers=admin_headers).json() == []
