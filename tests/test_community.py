from recipehub.models import Comment, Notification, Recipe, RecipeStatus

BASE = "/api/v1/community/recipes"


def test_first_rating_creates_then_updates(client, chef, user_headers, make_recipe):
    recipe = make_recipe(chef)

    res = client.post(f"{BASE}/{recipe.id}/ratings", json={"rating": 4}, headers=user_headers)
    assert res.status_code == 201, res.text
    assert res.json()["data"]["recipe_stats"] == {"average_rating": 4.0, "total_ratings": 1}

    res = client.post(f"{BASE}/{recipe.id}/ratings", json={"rating": 2}, headers=user_headers)
    assert res.status_code == 200
    assert res.json()["message"] == "Rating updated successfully"
    assert res.json()["data"]["recipe_stats"] == {"average_rating": 2.0, "total_ratings": 1}


def test_average_is_rounded_to_one_decimal(client, chef, make_user, auth_headers, make_recipe, db_session):
    recipe = make_recipe(chef)
    for value in (5, 4, 4):
        headers = auth_headers(make_user())
        client.post(f"{BASE}/{recipe.id}/ratings", json={"rating": value}, headers=headers)

    db_session.expire_all()
    refreshed = db_session.get(Recipe, recipe.id)
    assert refreshed.total_ratings == 3
    assert refreshed.average_rating == 4.3


def test_rating_bounds_and_own_recipe(client, chef, chef_headers, user_headers, make_recipe):
    recipe = make_recipe(chef)
    assert client.post(f"{BASE}/{recipe.id}/ratings", json={"rating": 6}, headers=user_headers).status_code == 400
    assert client.post(f"{BASE}/{recipe.id}/ratings", json={"rating": 0}, headers=user_headers).status_code == 400

    own = client.post(f"{BASE}/{recipe.id}/ratings", json={"rating": 5}, headers=chef_headers)
    assert own.status_code == 400
    assert own.json()["message"] == "You cannot rate your own recipe"


def test_cannot_rate_pending_recipe(client, chef, user_headers, make_recipe):
    recipe = make_recipe(chef, status=RecipeStatus.PENDING)
    res = client.post(f"{BASE}/{recipe.id}/ratings", json={"rating": 3}, headers=user_headers)
    assert res.status_code == 404


def test_five_star_rating_notifies_author(client, chef, user_headers, make_recipe, db_session):
    recipe = make_recipe(chef)
    client.post(f"{BASE}/{recipe.id}/ratings", json={"rating": 4}, headers=user_headers)
    assert db_session.query(Notification).filter(Notification.action_type == "high_rating").count() == 0

    client.post(f"{BASE}/{recipe.id}/ratings", json={"rating": 5}, headers=user_headers)
    notes = db_session.query(Notification).filter(Notification.user_id == chef.id).all()
    assert [n.action_type for n in notes] == ["high_rating"]


def test_ratings_listing_has_distribution(client, chef, make_user, auth_headers, make_recipe):
    recipe = make_recipe(chef)
    for value in (5, 5, 3):
        client.post(f"{BASE}/{recipe.id}/ratings", json={"rating": value}, headers=auth_headers(make_user()))

    headers = auth_headers(make_user())
    data = client.get(f"{BASE}/{recipe.id}/ratings", headers=headers).json()["data"]
    assert data["total_ratings"] == 3
    assert data["distribution"] == {"1": 0, "2": 0, "3": 1, "4": 0, "5": 2}
    assert len(data["ratings"]) == 3

    mine = client.get(f"{BASE}/{recipe.id}/ratings/me", headers=headers).json()["data"]
    assert mine["rating"] is None


def test_delete_my_rating_recomputes(client, chef, user_headers, make_recipe):
    recipe = make_recipe(chef)
    client.post(f"{BASE}/{recipe.id}/ratings", json={"rating": 3}, headers=user_headers)

    res = client.delete(f"{BASE}/{recipe.id}/ratings/me", headers=user_headers)
    assert res.status_code == 200
    assert res.json()["data"]["recipe_stats"] == {"average_rating": 0.0, "total_ratings": 0}

    assert client.delete(f"{BASE}/{recipe.id}/ratings/me", headers=user_headers).status_code == 404


def test_comment_thread_and_counts(client, chef, chef_headers, user, user_headers, make_recipe, db_session):
    recipe = make_recipe(chef)

    res = client.post(f"{BASE}/{recipe.id}/comments", json={"content": "  Lovely  "}, headers=user_headers)
    assert res.status_code == 201, res.text
    top = res.json()["data"]
    assert top["content"] == "Lovely"
    assert top["user"]["id"] == user.id

    reply = client.post(
        f"{BASE}/{recipe.id}/comments",
        json={"content": "Thanks!", "parent_id": top["id"]},
        headers=chef_headers,
    )
    assert reply.status_code == 201

    listing = client.get(f"{BASE}/{recipe.id}/comments", headers=user_headers).json()["data"]
    assert listing["pagination"]["total"] == 1
    assert listing["comments"][0]["replies"][0]["content"] == "Thanks!"

    db_session.expire_all()
    assert db_session.get(Recipe, recipe.id).total_comments == 2
    # author is not notified about their own reply
    assert db_session.query(Notification).filter(Notification.action_type == "new_comment").count() == 1


def test_comment_validation(client, chef, user_headers, make_recipe):
    recipe = make_recipe(chef)
    assert client.post(f"{BASE}/{recipe.id}/comments", json={"content": "   "}, headers=user_headers).status_code == 400
    res = client.post(
        f"{BASE}/{recipe.id}/comments",
        json={"content": "x" * 1001},
        headers=user_headers,
    )
    assert res.status_code == 400


def test_reply_parent_must_belong_to_recipe(client, chef, user_headers, make_recipe):
    first = make_recipe(chef)
    second = make_recipe(chef, title="Another Recipe")
    top = client.post(f"{BASE}/{first.id}/comments", json={"content": "Hi"}, headers=user_headers).json()["data"]

    res = client.post(
        f"{BASE}/{second.id}/comments",
        json={"content": "Wrong thread", "parent_id": top["id"]},
        headers=user_headers,
    )
    assert res.status_code == 400


def test_only_owner_updates_comment(client, chef, chef_headers, user_headers, make_recipe):
    recipe = make_recipe(chef)
    cid = client.post(f"{BASE}/{recipe.id}/comments", json={"content": "Hi"}, headers=user_headers).json()["data"]["id"]

    assert client.put(
        f"{BASE}/{recipe.id}/comments/{cid}", json={"content": "Hijacked"}, headers=chef_headers
    ).status_code == 403

    res = client.put(f"{BASE}/{recipe.id}/comments/{cid}", json={"content": "Edited"}, headers=user_headers)
    assert res.status_code == 200
    assert res.json()["data"]["content"] == "Edited"


def test_delete_comment_cascades_replies(client, chef, chef_headers, user_headers, admin_headers,
                                         make_recipe, db_session):
    recipe = make_recipe(chef)
    top = client.post(f"{BASE}/{recipe.id}/comments", json={"content": "Top"}, headers=user_headers).json()["data"]
    client.post(f"{BASE}/{recipe.id}/comments", json={"content": "Reply", "parent_id": top["id"]},
                headers=chef_headers)

    assert client.delete(f"{BASE}/{recipe.id}/comments/{top['id']}", headers=chef_headers).status_code == 403

    res = client.delete(f"{BASE}/{recipe.id}/comments/{top['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["deleted_count"] == 2

    db_session.expire_all()
    assert db_session.query(Comment).count() == 0
    assert db_session.get(Recipe, recipe.id).total_comments == 0
