from recipehub.models import AuditLog, Comment, Recipe, Role, Session as UserSession

from conftest import DEFAULT_PASSWORD


def test_ban_revokes_sessions_and_blocks_login(client, user, user_headers, admin_headers, db_session):
    res = client.post(
        f"/api/v1/admin/users/{user.id}/ban",
        json={"reason": "Repeated spam in comments"},
        headers=admin_headers,
    )
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["is_banned"] is True
    assert data["ban_reason"] == "Repeated spam in comments"

    assert client.get("/api/v1/auth/me", headers=user_headers).status_code == 401
    db_session.expire_all()
    assert db_session.query(UserSession).filter(UserSession.user_id == user.id).count() == 0

    login = client.post("/api/v1/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
    assert login.status_code == 403

    log = db_session.query(AuditLog).filter(AuditLog.action == "user_banned").one()
    assert log.target_id == user.id
    assert log.details["sessions_revoked"] == 1


def test_ban_guards(client, admin, user, admin_headers, make_user):
    short = client.post(f"/api/v1/admin/users/{user.id}/ban", json={"reason": "spam"}, headers=admin_headers)
    assert short.status_code == 400

    me = client.post(f"/api/v1/admin/users/{admin.id}/ban", json={"reason": "Banning myself today"},
                     headers=admin_headers)
    assert me.status_code == 403

    other_admin = make_user(Role.ADMIN)
    res = client.post(f"/api/v1/admin/users/{other_admin.id}/ban", json={"reason": "Admins are protected"},
                      headers=admin_headers)
    assert res.status_code == 403

    missing = client.post("/api/v1/admin/users/nope/ban", json={"reason": "Nobody to ban here"},
                          headers=admin_headers)
    assert missing.status_code == 404


def test_unban_restores_access(client, make_user, admin_headers):
    banned = make_user(is_banned=True, ban_reason="Old offence on record")

    res = client.post(f"/api/v1/admin/users/{banned.id}/unban", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["is_banned"] is False
    assert res.json()["data"]["ban_reason"] is None

    again = client.post(f"/api/v1/admin/users/{banned.id}/unban", headers=admin_headers)
    assert again.status_code == 400

    login = client.post("/api/v1/auth/login", json={"email": banned.email, "password": DEFAULT_PASSWORD})
    assert login.status_code == 200


def test_change_role(client, admin, user, admin_headers, db_session):
    res = client.put(f"/api/v1/admin/users/{user.id}/role", json={"role": "CHEF"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["role"] == "CHEF"

    same = client.put(f"/api/v1/admin/users/{user.id}/role", json={"role": "CHEF"}, headers=admin_headers)
    assert same.status_code == 400

    own = client.put(f"/api/v1/admin/users/{admin.id}/role", json={"role": "USER"}, headers=admin_headers)
    assert own.status_code == 400

    bad = client.put(f"/api/v1/admin/users/{user.id}/role", json={"role": "OWNER"}, headers=admin_headers)
    assert bad.status_code == 400

    log = db_session.query(AuditLog).filter(AuditLog.action == "role_changed").one()
    assert log.details == {"old_role": "USER", "new_role": "CHEF"}


def test_demoting_another_admin_allowed_while_one_remains(client, make_user, admin_headers):
    second = make_user(Role.ADMIN)
    res = client.put(f"/api/v1/admin/users/{second.id}/role", json={"role": "USER"}, headers=admin_headers)
    assert res.status_code == 200


def test_list_users_with_counts_and_filters(client, chef, user, admin_headers, make_recipe, make_user):
    make_recipe(chef)
    make_recipe(chef, title="Second Dish")
    make_user(is_banned=True, email="banned@example.com")

    res = client.get("/api/v1/admin/users", params={"role": "CHEF"}, headers=admin_headers)
    assert res.status_code == 200
    users = res.json()["data"]["users"]
    assert [u["id"] for u in users] == [chef.id]
    assert users[0]["recipe_count"] == 2
    assert users[0]["comment_count"] == 0

    banned = client.get("/api/v1/admin/users", params={"status": "banned"}, headers=admin_headers)
    assert [u["email"] for u in banned.json()["data"]["users"]] == ["banned@example.com"]

    search = client.get("/api/v1/admin/users", params={"search": user.email}, headers=admin_headers)
    assert search.json()["data"]["pagination"]["total"] == 1


def test_user_details_statistics(client, chef, user, user_headers, admin_headers, make_recipe):
    recipe = make_recipe(chef)
    make_recipe(chef, status="PENDING", title="Waiting Dish")
    client.post(f"/api/v1/community/recipes/{recipe.id}/ratings", json={"rating": 4}, headers=user_headers)

    chef_stats = client.get(f"/api/v1/admin/users/{chef.id}", headers=admin_headers).json()["data"]
    assert chef_stats["statistics"]["recipes_submitted"] == 2
    assert chef_stats["statistics"]["recipes_approved"] == 1
    assert chef_stats["statistics"]["recipes_pending"] == 1
    assert chef_stats["statistics"]["average_recipe_rating"] == 4.0

    user_stats = client.get(f"/api/v1/admin/users/{user.id}", headers=admin_headers).json()["data"]
    assert user_stats["statistics"]["ratings_given"] == 1
    assert user_stats["recent_activity"][0]["type"] == "rating_given"


def test_admin_delete_recipe_requires_reason_and_audits(client, chef, admin_headers, make_recipe, db_session):
    recipe = make_recipe(chef)
    short = client.request("DELETE", f"/api/v1/admin/recipes/{recipe.id}", json={"reason": "no"},
                           headers=admin_headers)
    assert short.status_code == 400

    res = client.request(
        "DELETE", f"/api/v1/admin/recipes/{recipe.id}",
        json={"reason": "Duplicate of an existing recipe"}, headers=admin_headers,
    )
    assert res.status_code == 200
    db_session.expire_all()
    assert db_session.get(Recipe, recipe.id) is None
    log = db_session.query(AuditLog).filter(AuditLog.action == "recipe_deleted").one()
    assert log.target_name == recipe.title


def test_bulk_delete_recipes_reports_per_item(client, chef, admin_headers, make_recipe):
    first = make_recipe(chef)
    second = make_recipe(chef, title="Second Dish")
    res = client.post(
        "/api/v1/admin/recipes/bulk-delete",
        json={"recipe_ids": [first.id, "missing", second.id], "reason": "Cleaning up test data"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["deleted_count"] == 2
    assert data["failed_count"] == 1
    assert data["results"][1] == {"id": "missing", "success": False, "error": "Recipe not found"}


def test_comment_moderation(client, chef, user_headers, admin_headers, make_recipe, db_session):
    recipe = make_recipe(chef)
    base = f"/api/v1/community/recipes/{recipe.id}/comments"
    top = client.post(base, json={"content": "Buy cheap watches"}, headers=user_headers).json()["data"]
    reply = client.post(base, json={"content": "Me too", "parent_id": top["id"]},
                        headers=user_headers).json()["data"]
    client.post(base, json={"content": "Tasty!"}, headers=user_headers)

    listing = client.get("/api/v1/admin/comments", params={"search": "watches"}, headers=admin_headers)
    comments = listing.json()["data"]["comments"]
    assert len(comments) == 1
    assert comments[0]["recipe_title"] == recipe.title

    res = client.post(
        "/api/v1/admin/comments/bulk-delete",
        json={"comment_ids": [top["id"], reply["id"]], "reason": "Spam advertising links"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    data = res.json()["data"]
    # the reply went with its parent
    assert data["deleted_count"] == 1
    assert data["failed_count"] == 1

    db_session.expire_all()
    assert db_session.query(Comment).count() == 1
    assert db_session.get(Recipe, recipe.id).total_comments == 1


def test_audit_log_filters(client, chef, user, admin, admin_headers, make_recipe):
    recipe = make_recipe(chef, status="PENDING")
    client.put(f"/api/v1/admin/recipes/{recipe.id}/approve", headers=admin_headers)
    client.post(f"/api/v1/admin/users/{user.id}/ban", json={"reason": "Abusive language used"},
                headers=admin_headers)

    everything = client.get("/api/v1/admin/audit-logs", headers=admin_headers).json()["data"]
    assert everything["pagination"]["total"] == 2
    assert everything["logs"][0]["action"] == "user_banned"

    by_user = client.get("/api/v1/admin/audit-logs", params={"target_user_id": user.id},
                         headers=admin_headers).json()["data"]
    assert [log["action"] for log in by_user["logs"]] == ["user_banned"]

    by_action = client.get("/api/v1/admin/audit-logs", params={"action": "recipe_approved"},
                           headers=admin_headers).json()["data"]
    assert by_action["logs"][0]["admin_id"] == admin.id
