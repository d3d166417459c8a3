from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from app.api.auth import create_access_token
from app.api.dependencies import get_db, get_notification_service
from app.crud import crud_booking_reminder
from app.db_utils import ensure_booking_reminders_table, schema_state
from app.main import app

API = "/api/v1"


def auth_headers(user_id, account_type="user"):
    token = create_access_token({"sub": str(user_id), "account_type": account_type})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db, service):
    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_notification_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_requires_a_token(client):
    assert client.get(f"{API}/notifications").status_code == 401
    assert client.get(f"{API}/notifications/stream").status_code == 401


def test_rejects_a_forged_token(client):
    res = client.get(f"{API}/notifications", headers={"Authorization": "Bearer not-a-jwt"})

    assert res.status_code == 401


def test_lists_own_notifications_newest_first(client, service):
    first = service.create_notification(7, "First", "one").notification_id
    second = service.create_notification(7, "Second", "two", type="success", link="/user/furparent_dashboard").notification_id
    service.create_notification(8, "Not yours", "three")

    res = client.get(f"{API}/notifications", headers=auth_headers(7))

    assert res.status_code == 200
    body = res.json()
    assert [n["id"] for n in body] == [second, first]
    assert body[0]["type"] == "success"
    assert body[0]["link"] == "/user/furparent_dashboard"
    assert body[0]["is_read"] is False


def test_limit_is_validated(client):
    res = client.get(f"{API}/notifications?limit=0", headers=auth_headers(7))

    assert res.status_code == 422
    assert res.json()["detail"]["message"] == "Validation error"


def test_unread_count_and_mark_read(client, service):
    nid = service.create_notification(7, "Hi", "There").notification_id
    service.create_notification(7, "Again", "There")

    assert client.get(f"{API}/notifications/unread-count", headers=auth_headers(7)).json() == {"count": 2}

    assert client.put(f"{API}/notifications/{nid}/read", headers=auth_headers(7)).status_code == 204
    assert client.put(f"{API}/notifications/{nid}/read", headers=auth_headers(7)).status_code == 204
    assert client.get(f"{API}/notifications/unread-count", headers=auth_headers(7)).json() == {"count": 1}


def test_cannot_mark_someone_elses_notification(client, service):
    nid = service.create_notification(7, "Hi", "There").notification_id

    res = client.put(f"{API}/notifications/{nid}/read", headers=auth_headers(8))

    assert res.status_code == 404
    assert res.json()["detail"]["message"] == "Notification not found"
    assert service.get_unread_count(7) == 1


def test_read_all(client, service):
    service.create_notification(7, "A", "a")
    service.create_notification(7, "B", "b")

    res = client.put(f"{API}/notifications/read-all", headers=auth_headers(7))

    assert res.json() == {"updated": 2}
    assert client.put(f"{API}/notifications/read-all", headers=auth_headers(7)).json() == {"updated": 0}


def test_admin_routes_require_admin(client):
    assert client.get(f"{API}/admin/notifications", headers=auth_headers(7)).status_code == 403
    res = client.post(
        f"{API}/admin/notifications/system",
        json={"kind": "service_update", "title": "T", "message": "M"},
        headers=auth_headers(20, "business"),
    )
    assert res.status_code == 403


def test_admin_creates_and_lists_notifications(client, seed, email_sender):
    seed.user(1, email="admin@rainbowpaws.ph", role="admin")
    headers = auth_headers(1, "admin")

    res = client.post(
        f"{API}/admin/notifications",
        json={
            "type": "refund_request",
            "title": "New Refund Request",
            "message": "Refund for booking #42",
            "entity_type": "refund",
            "entity_id": 17,
        },
        headers=headers,
    )

    assert res.status_code == 201
    assert res.json()["success"] is True
    assert [e.to for e in email_sender.sent] == ["admin@rainbowpaws.ph"]

    listed = client.get(f"{API}/admin/notifications?unread_only=true", headers=headers).json()
    assert listed[0]["link"] == "/admin/refunds?refundId=17"
    assert listed[0]["is_read"] is False


def test_admin_broadcasts_system_notification(client, seed):
    seed.user(7)
    seed.user(8)

    res = client.post(
        f"{API}/admin/notifications/system",
        json={"kind": "policy_update", "title": "Terms", "message": "We updated our terms.", "user_ids": [7, 8]},
        headers=auth_headers(1, "admin"),
    )

    assert res.status_code == 200
    assert res.json() == {"success": True, "created": 2, "failed": 0}


def test_system_notification_kind_is_validated(client):
    res = client.post(
        f"{API}/admin/notifications/system",
        json={"kind": "flash_sale", "title": "T", "message": "M"},
        headers=auth_headers(1, "admin"),
    )

    assert res.status_code == 422


def test_reminder_run_endpoint(client, seed, db):
    # Opted out of email so the run never reaches SMTP
    seed.user(7, email_notifications=0)
    seed.package(5)
    seed.booking(42, 7, package_id=5)
    ensure_booking_reminders_table(db.get_bind(), schema_state)
    crud_booking_reminder.create_reminder(db, 42, "24h", datetime.now() - timedelta(minutes=1))

    res = client.post(f"{API}/notifications/reminders/process", headers=auth_headers(1, "admin"))

    assert res.status_code == 200
    body = res.json()
    assert body["processed"] == 1
    assert body["failed"] == 0
    assert body["review_requests"] == 0
    assert body["stats"] == {"total": 1, "pending": 0, "sent": 1, "overdue": 0}


def test_token_account_type_must_be_known(client):
    res = client.get(f"{API}/notifications", headers=auth_headers(7, "superuser"))

    assert res.status_code == 401


def test_list_pages_and_filters_unread(client, service):
    ids = [service.create_notification(7, f"N{i}", "msg").notification_id for i in range(3)]
    service.mark_notification_as_read(ids[2], 7)

    page = client.get(f"{API}/notifications?limit=1&offset=1", headers=auth_headers(7)).json()
    unread = client.get(f"{API}/notifications?unread_only=true", headers=auth_headers(7)).json()

    assert [n["id"] for n in page] == [ids[1]]
    assert [n["id"] for n in unread] == [ids[1], ids[0]]


def test_batch_mark_read_skips_other_users(client, service):
    mine = [service.create_notification(7, f"N{i}", "msg").notification_id for i in range(3)]
    theirs = service.create_notification(8, "Not yours", "msg").notification_id

    res = client.put(
        f"{API}/notifications/read",
        json={"notification_ids": [mine[0], mine[1], theirs]},
        headers=auth_headers(7),
    )

    assert res.json() == {"updated": 2}
    assert service.get_unread_count(7) == 1
    assert service.get_unread_count(8) == 1


def test_batch_mark_read_needs_ids(client):
    res = client.put(f"{API}/notifications/read", json={"notification_ids": []}, headers=auth_headers(7))

    assert res.status_code == 422


def test_read_and_update_preferences(client, seed, service, email_sender):
    seed.user(7, email="maria@example.com", email_notifications=None, sms_notifications=None)

    before = client.get(f"{API}/notifications/preferences", headers=auth_headers(7)).json()
    res = client.put(
        f"{API}/notifications/preferences",
        json={"email_notifications": False, "sms_notifications": True},
        headers=auth_headers(7),
    )
    after = client.get(f"{API}/notifications/preferences", headers=auth_headers(7)).json()

    assert before == {"email_notifications": True, "sms_notifications": False}
    assert res.status_code == 200
    assert after == {"email_notifications": False, "sms_notifications": True}

    service.create_notification(7, "Hi", "There", should_send_email=True)
    assert email_sender.sent == []


def test_preferences_for_unknown_user(client):
    assert client.get(f"{API}/notifications/preferences", headers=auth_headers(99)).status_code == 404
    res = client.put(
        f"{API}/notifications/preferences",
        json={"email_notifications": True, "sms_notifications": True},
        headers=auth_headers(99),
    )
    assert res.status_code == 404


def test_admin_marks_notifications_read(client, service):
    first = service.create_admin_notification("refund_request", "Refund", "r", should_send_email=False).notification_id
    service.create_admin_notification("new_appeal", "Appeal", "a", should_send_email=False)
    service.create_admin_notification("new_appeal", "Appeal 2", "a", should_send_email=False)
    headers = auth_headers(1, "admin")

    by_id = client.put(f"{API}/admin/notifications/read", json={"notification_ids": [first]}, headers=headers)
    by_type = client.put(
        f"{API}/admin/notifications/read", json={"mark_all": True, "type": "new_appeal"}, headers=headers
    )
    unread = client.get(f"{API}/admin/notifications?unread_only=true", headers=headers).json()

    assert by_id.json() == {"updated": 1}
    assert by_type.json() == {"updated": 2}
    assert unread == []


def test_admin_mark_read_needs_ids_or_mark_all(client):
    headers = auth_headers(1, "admin")

    assert client.put(f"{API}/admin/notifications/read", json={}, headers=headers).status_code == 400
    assert client.put(
        f"{API}/admin/notifications/read", json={"mark_all": True}, headers=auth_headers(7)
    ).status_code == 403
