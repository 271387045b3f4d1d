from recipehub.models import AuditLog, Notification, Recipe, RecipeStatus, RecipeView, Role

from conftest import recipe_payload


def test_chef_submits_pending_recipe_and_admins_are_notified(client, chef_headers, admin, db_session):
    res = client.post("/api/v1/recipes", json=recipe_payload(), headers=chef_headers)
    assert res.status_code == 201, res.text
    data = res.json()["data"]
    assert data["status"] == "PENDING"
    assert data["ingredients"][0]["name"] == "Chicken thighs"

    notes = db_session.query(Notification).filter(Notification.user_id == admin.id).all()
    assert len(notes) == 1
    assert notes[0].action_type == "new_submission"


def test_plain_user_cannot_submit(client, user_headers):
    res = client.post("/api/v1/recipes", json=recipe_payload(), headers=user_headers)
    assert res.status_code == 403


def test_submission_validation(client, chef_headers):
    res = client.post("/api/v1/recipes", json=recipe_payload(title="ab", ingredients=[]), headers=chef_headers)
    assert res.status_code == 400
    fields = {e["field"] for e in res.json()["errors"]}
    assert "title" in fields
    assert "ingredients" in fields


def test_approve_then_approve_again_fails(client, chef, admin_headers, make_recipe, db_session):
    recipe = make_recipe(chef, status=RecipeStatus.PENDING)

    res = client.put(
        f"/api/v1/admin/recipes/{recipe.id}/approve",
        json={"admin_note": "Looks delicious"},
        headers=admin_headers,
    )
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["status"] == "APPROVED"
    assert data["approved_at"] is not None
    assert data["admin_note"] == "Looks delicious"

    again = client.put(f"/api/v1/admin/recipes/{recipe.id}/approve", json={}, headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Recipe is already approved"

    # author notified, action audited
    assert db_session.query(Notification).filter(
        Notification.user_id == chef.id, Notification.action_type == "recipe_approved"
    ).count() == 1
    assert db_session.query(AuditLog).filter(AuditLog.action == "recipe_approved").count() == 1


def test_reject_requires_reason(client, chef, admin_headers, make_recipe):
    recipe = make_recipe(chef, status=RecipeStatus.PENDING)
    res = client.put(f"/api/v1/admin/recipes/{recipe.id}/reject", json={"reason": "bad"}, headers=admin_headers)
    assert res.status_code == 400

    res = client.put(f"/api/v1/admin/recipes/{recipe.id}/reject", json={}, headers=admin_headers)
    assert res.status_code == 400


def test_reject_then_author_edit_resets_to_pending(client, chef, chef_headers, admin_headers, make_recipe):
    recipe = make_recipe(chef, status=RecipeStatus.PENDING)
    res = client.put(
        f"/api/v1/admin/recipes/{recipe.id}/reject",
        json={"reason": "Please add cooking temperatures"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    rejected = res.json()["data"]
    assert rejected["status"] == "REJECTED"
    assert rejected["rejection_reason"] == "Please add cooking temperatures"

    again = client.put(
        f"/api/v1/admin/recipes/{recipe.id}/reject",
        json={"reason": "Still missing temperatures"},
        headers=admin_headers,
    )
    assert again.status_code == 400

    res = client.put(
        f"/api/v1/recipes/{recipe.id}",
        json={"instructions": ["Season the chicken", "Roast at 200C for 25 minutes"]},
        headers=chef_headers,
    )
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["status"] == "PENDING"
    assert data["rejected_at"] is None
    assert data["rejected_by_id"] is None
    assert data["rejection_reason"] is None
    assert data["instructions"][1] == "Roast at 200C for 25 minutes"


def test_admin_edit_of_rejected_recipe_resets_to_pending(client, chef, admin_headers, make_recipe):
    recipe = make_recipe(chef, status=RecipeStatus.PENDING)
    client.put(
        f"/api/v1/admin/recipes/{recipe.id}/reject",
        json={"reason": "Needs better photos"},
        headers=admin_headers,
    )

    res = client.put(f"/api/v1/recipes/{recipe.id}", json={"title": "Crispy roast chicken"}, headers=admin_headers)
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["title"] == "Crispy roast chicken"
    assert data["status"] == "PENDING"
    assert data["rejected_at"] is None
    assert data["rejection_reason"] is None


def test_rejected_recipe_can_be_approved(client, chef, admin, admin_headers, make_recipe):
    recipe = make_recipe(chef, status=RecipeStatus.REJECTED, rejection_reason="Too vague instructions")
    res = client.put(f"/api/v1/admin/recipes/{recipe.id}/approve", headers=admin_headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["status"] == "APPROVED"
    assert data["rejection_reason"] is None
    assert data["approved_by_id"] == admin.id


def test_author_cannot_edit_approved_but_admin_can(client, chef, chef_headers, admin_headers, make_recipe):
    recipe = make_recipe(chef)
    res = client.put(f"/api/v1/recipes/{recipe.id}", json={"title": "New title"}, headers=chef_headers)
    assert res.status_code == 403

    res = client.put(f"/api/v1/recipes/{recipe.id}", json={"title": "Admin title"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["title"] == "Admin title"
    assert res.json()["data"]["status"] == "APPROVED"


def test_other_chef_cannot_edit_or_delete(client, chef, make_user, auth_headers, make_recipe):
    recipe = make_recipe(chef, status=RecipeStatus.PENDING)
    other = auth_headers(make_user(Role.CHEF))
    assert client.put(f"/api/v1/recipes/{recipe.id}", json={"title": "Stolen"}, headers=other).status_code == 403
    assert client.delete(f"/api/v1/recipes/{recipe.id}", headers=other).status_code == 403


def test_visibility_of_non_approved(client, chef, chef_headers, user_headers, admin_headers, make_recipe):
    recipe = make_recipe(chef, status=RecipeStatus.PENDING)
    assert client.get(f"/api/v1/recipes/{recipe.id}", headers=user_headers).status_code == 403
    assert client.get(f"/api/v1/recipes/{recipe.id}", headers=chef_headers).status_code == 200
    assert client.get(f"/api/v1/recipes/{recipe.id}", headers=admin_headers).status_code == 200
    assert client.get("/api/v1/recipes/missing", headers=user_headers).status_code == 404


def test_delete_recipe_by_author(client, chef, chef_headers, make_recipe, db_session):
    recipe = make_recipe(chef, status=RecipeStatus.PENDING)
    assert client.delete(f"/api/v1/recipes/{recipe.id}", headers=chef_headers).status_code == 200
    db_session.expire_all()
    assert db_session.get(Recipe, recipe.id) is None


def test_browse_filters_and_sorting(client, chef, make_recipe):
    make_recipe(chef, title="Quick Salad", prep_time=5, meal_type=["LUNCH"], diet_type=["VEGAN"],
                main_ingredient="Lettuce", average_rating=4.5)
    make_recipe(chef, title="Slow Stew", prep_time=60, meal_type=["DINNER"], difficulty="HARD",
                main_ingredient="Beef", average_rating=3.0)
    make_recipe(chef, title="Hidden Draft", status=RecipeStatus.PENDING)

    res = client.get("/api/v1/recipes")
    assert res.status_code == 200
    body = res.json()["data"]
    assert body["pagination"]["total"] == 2
    assert {r["title"] for r in body["recipes"]} == {"Quick Salad", "Slow Stew"}

    res = client.get("/api/v1/recipes", params={"meal_type": "LUNCH"})
    assert [r["title"] for r in res.json()["data"]["recipes"]] == ["Quick Salad"]

    res = client.get("/api/v1/recipes", params={"difficulty": "hard"})
    assert [r["title"] for r in res.json()["data"]["recipes"]] == ["Slow Stew"]

    res = client.get("/api/v1/recipes", params={"max_prep_time": 10})
    assert [r["title"] for r in res.json()["data"]["recipes"]] == ["Quick Salad"]

    res = client.get("/api/v1/recipes", params={"search": "stew"})
    assert [r["title"] for r in res.json()["data"]["recipes"]] == ["Slow Stew"]

    res = client.get("/api/v1/recipes", params={"ingredients": "garlic,beef"})
    assert res.json()["data"]["pagination"]["total"] == 2

    res = client.get("/api/v1/recipes", params={"sort_by": "rating", "sort_order": "asc"})
    assert [r["title"] for r in res.json()["data"]["recipes"]] == ["Slow Stew", "Quick Salad"]


def test_browse_pagination(client, chef, make_recipe):
    for i in range(5):
        make_recipe(chef, title=f"Recipe number {i}")
    res = client.get("/api/v1/recipes", params={"page": 2, "limit": 2})
    meta = res.json()["data"]["pagination"]
    assert meta == {"page": 2, "limit": 2, "total": 5, "total_pages": 3, "has_next": True, "has_prev": True}
    assert len(res.json()["data"]["recipes"]) == 2


def test_my_recipes_filter_by_status(client, chef, chef_headers, make_recipe):
    make_recipe(chef, status=RecipeStatus.PENDING, title="Pending one")
    make_recipe(chef, title="Approved one")
    res = client.get("/api/v1/recipes/my-recipes", params={"status": "PENDING"}, headers=chef_headers)
    assert res.status_code == 200
    assert [r["title"] for r in res.json()["data"]["recipes"]] == ["Pending one"]


def test_view_tracking_dedupes_per_day(client, chef, user_headers, make_recipe, db_session):
    recipe = make_recipe(chef)

    first = client.post(f"/api/v1/recipes/{recipe.id}/view", headers=user_headers)
    assert first.status_code == 200
    assert first.json()["data"]["recorded"] is True

    second = client.post(f"/api/v1/recipes/{recipe.id}/view", headers=user_headers)
    assert second.json()["data"]["recorded"] is False

    anon = client.post(f"/api/v1/recipes/{recipe.id}/view", headers={"X-Forwarded-For": "10.0.0.7"})
    assert anon.json()["data"]["recorded"] is True
    anon_again = client.post(f"/api/v1/recipes/{recipe.id}/view", headers={"X-Forwarded-For": "10.0.0.7"})
    assert anon_again.json()["data"]["recorded"] is False

    assert db_session.query(RecipeView).filter(RecipeView.recipe_id == recipe.id).count() == 2


def test_trending_and_new_feeds(client, chef, user_headers, make_recipe):
    quiet = make_recipe(chef, title="Quiet Recipe")
    popular = make_recipe(chef, title="Popular Recipe")
    client.post(f"/api/v1/recipes/{popular.id}/view", headers=user_headers)

    trending = client.get("/api/v1/recipes/trending").json()["data"]["recipes"]
    assert trending[0]["id"] == popular.id

    newest = client.get("/api/v1/recipes/new").json()["data"]["recipes"]
    assert {r["id"] for r in newest} == {quiet.id, popular.id}


def test_admin_pending_queue_and_stats(client, chef, admin_headers, make_recipe):
    older = make_recipe(chef, status=RecipeStatus.PENDING, title="Older pending")
    make_recipe(chef, status=RecipeStatus.PENDING, title="Newer pending")
    make_recipe(chef, title="Already live")

    res = client.get("/api/v1/admin/recipes/pending", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["recipes"][0]["id"] == older.id

    client.put(f"/api/v1/admin/recipes/{older.id}/approve", headers=admin_headers)
    stats = client.get("/api/v1/admin/recipes/stats", headers=admin_headers).json()["data"]
    assert stats["pending"] == 1
    assert stats["approved"] == 2
    assert stats["total"] == 3
    assert stats["approved_today"] == 1


def test_admin_routes_require_admin(client, user_headers, chef_headers):
    assert client.get("/api/v1/admin/recipes/pending", headers=user_headers).status_code == 403
    assert client.get("/api/v1/admin/recipes/pending", headers=chef_headers).status_code == 403
    assert client.get("/api/v1/admin/recipes/pending").status_code == 401
