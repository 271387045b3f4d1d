from datetime import timedelta

import httpx
import pytest

from recipehub.core.clock import utcnow
from recipehub.errors import DeliveryError
from recipehub.models import Notification, PushToken, RecipeStatus
from recipehub.services import notification_service
from recipehub.services import push as push_client
from recipehub.services.push import send_push as real_send_push
from recipehub.settings import settings


def _notify(db_session, user, **overrides):
    fields = {"type": "INFO", "title": "Hello", "description": "Something happened"}
    fields.update(overrides)
    return notification_service.create_notification(db_session, user_id=user.id, **fields)


def test_approval_fans_out_to_push_and_email(client, chef, chef_headers, admin_headers, make_recipe,
                                             pushes, outbox):
    res = client.post("/api/v1/notifications/fcm/register", json={"token": "device-1", "os": "android"},
                      headers=chef_headers)
    assert res.status_code == 201
    assert res.json()["data"]["is_active"] is True

    recipe = make_recipe(chef, status=RecipeStatus.PENDING)
    client.put(f"/api/v1/admin/recipes/{recipe.id}/approve", headers=admin_headers)

    assert len(pushes) == 1
    assert pushes[0]["tokens"] == ["device-1"]
    assert pushes[0]["title"] == "Recipe Approved!"
    assert [m["subject"] for m in outbox] == ["Recipe Approved!"]


def test_preferences_gate_channels(client, chef, chef_headers, admin_headers, make_recipe, pushes, outbox):
    client.post("/api/v1/notifications/fcm/register", json={"token": "device-1"}, headers=chef_headers)

    prefs = client.get("/api/v1/notifications/preferences", headers=chef_headers).json()["data"]
    assert prefs["push_enabled"] is True
    assert prefs["email_new_comment"] is False

    res = client.put(
        "/api/v1/notifications/preferences",
        json={"push_recipe_approved": False, "email_enabled": False},
        headers=chef_headers,
    )
    assert res.status_code == 200
    assert res.json()["data"]["push_recipe_approved"] is False

    recipe = make_recipe(chef, status=RecipeStatus.PENDING)
    client.put(f"/api/v1/admin/recipes/{recipe.id}/approve", headers=admin_headers)
    assert pushes == []
    assert outbox == []

    # in-app notification is still stored
    listing = client.get("/api/v1/notifications", headers=chef_headers).json()["data"]
    assert listing["notifications"][0]["action_type"] == "recipe_approved"


def test_dead_tokens_are_deactivated(chef, db_session, monkeypatch):
    notification_service.register_push_token(db_session, chef.id, "alive")
    notification_service.register_push_token(db_session, chef.id, "gone")

    def fake_send(tokens, *, title, body, data=None, timeout_s=10.0):
        return push_client.PushResult(sent=1, failed=1, dead_tokens=["gone"])

    monkeypatch.setattr(push_client, "send_push", fake_send)
    _notify(db_session, chef, action_type="recipe_approved")

    db_session.expire_all()
    states = {t.token: t.is_active for t in db_session.query(PushToken)}
    assert states == {"alive": True, "gone": False}


@pytest.mark.parametrize("provider_body", ["<html>oops</html>", "[1, 2]", '{"results": ["bad"]}'])
def test_unreadable_push_response_does_not_fail_approval(client, chef, chef_headers, admin_headers, make_recipe,
                                                        outbox, monkeypatch, provider_body):
    monkeypatch.setattr(push_client, "send_push", real_send_push)
    monkeypatch.setattr(settings, "fcm_server_key", "server-key")
    monkeypatch.setattr(
        httpx, "post",
        lambda url, **kwargs: httpx.Response(200, text=provider_body, request=httpx.Request("POST", url)),
    )
    client.post("/api/v1/notifications/fcm/register", json={"token": "device-1"}, headers=chef_headers)

    recipe = make_recipe(chef, status=RecipeStatus.PENDING)
    res = client.put(f"/api/v1/admin/recipes/{recipe.id}/approve", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["status"] == RecipeStatus.APPROVED
    assert [m["subject"] for m in outbox] == ["Recipe Approved!"]


def test_send_push_rejects_unreadable_response(monkeypatch):
    monkeypatch.setattr(settings, "fcm_server_key", "server-key")
    monkeypatch.setattr(
        httpx, "post",
        lambda url, **kwargs: httpx.Response(200, text="not json", request=httpx.Request("POST", url)),
    )
    with pytest.raises(DeliveryError):
        real_send_push(["device-1"], title="t", body="b")


def test_list_filters_and_unread_count(client, user, user_headers, db_session):
    _notify(db_session, user, priority="HIGH")
    _notify(db_session, user, type="SUCCESS")
    read = _notify(db_session, user)
    notification_service.mark_read(db_session, read.id, user.id)

    data = client.get("/api/v1/notifications", headers=user_headers).json()["data"]
    assert data["pagination"]["total"] == 3
    assert data["unread_count"] == 2

    unread = client.get("/api/v1/notifications", params={"unread": "true"}, headers=user_headers).json()["data"]
    assert unread["pagination"]["total"] == 2

    high = client.get("/api/v1/notifications", params={"priority": "HIGH"}, headers=user_headers).json()["data"]
    assert high["pagination"]["total"] == 1

    count = client.get("/api/v1/notifications/unread-count", headers=user_headers).json()["data"]
    assert count == {"count": 2}


def test_mark_read_and_mark_all(client, user, user_headers, db_session):
    first = _notify(db_session, user)
    _notify(db_session, user)

    res = client.put(f"/api/v1/notifications/{first.id}/read", headers=user_headers)
    assert res.status_code == 200
    assert res.json()["data"]["is_read"] is True
    assert res.json()["data"]["read_at"] is not None

    res = client.put("/api/v1/notifications/mark-all-read", headers=user_headers)
    assert res.json()["data"] == {"updated_count": 1}


def test_cannot_touch_someone_elses_notification(client, chef, user_headers, db_session):
    theirs = _notify(db_session, chef)
    assert client.put(f"/api/v1/notifications/{theirs.id}/read", headers=user_headers).status_code == 404
    assert client.delete(f"/api/v1/notifications/{theirs.id}", headers=user_headers).status_code == 404


def test_delete_is_soft_and_clear_all(client, user, user_headers, db_session):
    first = _notify(db_session, user)
    _notify(db_session, user)
    _notify(db_session, user)

    assert client.delete(f"/api/v1/notifications/{first.id}", headers=user_headers).status_code == 200
    assert client.delete(f"/api/v1/notifications/{first.id}", headers=user_headers).status_code == 404

    db_session.expire_all()
    assert db_session.get(Notification, first.id).is_deleted is True

    res = client.delete("/api/v1/notifications", headers=user_headers)
    assert res.json()["data"] == {"deleted_count": 2}
    listing = client.get("/api/v1/notifications", headers=user_headers).json()["data"]
    assert listing["notifications"] == []


def test_register_existing_token_moves_it(client, user, chef, user_headers, db_session):
    notification_service.register_push_token(db_session, chef.id, "shared-device")
    res = client.post("/api/v1/notifications/fcm/register", json={"token": "shared-device"}, headers=user_headers)
    assert res.status_code == 201

    db_session.expire_all()
    row = db_session.query(PushToken).filter(PushToken.token == "shared-device").one()
    assert row.user_id == user.id


def test_unregister_token(client, user_headers):
    client.post("/api/v1/notifications/fcm/register", json={"token": "device-9"}, headers=user_headers)
    res = client.request("DELETE", "/api/v1/notifications/fcm/unregister", json={"token": "device-9"},
                         headers=user_headers)
    assert res.status_code == 200
    again = client.request("DELETE", "/api/v1/notifications/fcm/unregister", json={"token": "device-9"},
                           headers=user_headers)
    assert again.status_code == 404


def test_cleanup_removes_inactive_and_stale_tokens(user, db_session):
    fresh = notification_service.register_push_token(db_session, user.id, "fresh")
    stale = notification_service.register_push_token(db_session, user.id, "stale")
    dead = notification_service.register_push_token(db_session, user.id, "dead")
    stale.last_used_at = utcnow() - timedelta(days=31)
    dead.is_active = False
    db_session.commit()

    assert notification_service.cleanup_push_tokens(db_session) == 2
    db_session.expire_all()
    assert [t.token for t in db_session.query(PushToken)] == [fresh.token]
