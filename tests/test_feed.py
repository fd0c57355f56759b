from conftest import login, make_message
from optume.extensions import db
from optume.models import MessageLike


def test_feed_excludes_in_progress_and_rejected(app, client, users):
    with app.app_context():
        visible = {
            make_message(users["free"], title="p", status="pending"),
            make_message(users["pro"], title="c", status="completed"),
        }
        make_message(users["pro"], title="i", status="in_progress")
        make_message(users["pro"], title="r", status="rejected")
    login(client, users["free"])

    body = client.get("/feed").get_json()
    assert {m["id"] for m in body["messages"]} == visible
    assert all(m["status"] in ("pending", "completed") for m in body["messages"])
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 2, "totalPages": 1}


def test_admin_moderation_moves_message_in_and_out_of_feed(app, client, users):
    with app.app_context():
        mid = make_message(users["free"], status="in_progress")
    login(client, users["admin"])

    ids = lambda: [m["id"] for m in client.get("/feed").get_json()["messages"]]  # noqa: E731
    assert mid not in ids()

    assert client.put("/messages", json={"messageId": mid, "status": "completed"}).status_code == 200
    assert mid in ids()

    assert client.put("/messages", json={"messageId": mid, "status": "rejected"}).status_code == 200
    assert mid not in ids()


def test_feed_orders_by_likes_then_newest(app, client, users):
    with app.app_context():
        older = make_message(users["free"], title="older", like_count=2)
        newer = make_message(users["pro"], title="newer", like_count=2)
        top = make_message(users["pro"], title="top", like_count=5)
        cold = make_message(users["pro"], title="cold", like_count=0)
    login(client, users["free"])

    ids = [m["id"] for m in client.get("/feed").get_json()["messages"]]
    # Equal like counts fall back to newest first
    assert ids == [top, newer, older, cold]


def test_feed_flags_callers_likes(app, client, users):
    with app.app_context():
        liked = make_message(users["pro"], like_count=1)
        other = make_message(users["pro"])
        db.session.add(MessageLike(user_id=users["free"], message_id=liked))
        # Someone else's like must not leak into the caller's flag
        db.session.add(MessageLike(user_id=users["admin"], message_id=other))
        db.session.commit()
    login(client, users["free"])

    flags = {m["id"]: m["isLikedByUser"] for m in client.get("/feed").get_json()["messages"]}
    assert flags == {liked: True, other: False}


def test_feed_pagination(app, client, users):
    with app.app_context():
        for i in range(5):
            make_message(users["pro"], title=f"m{i}")
    login(client, users["free"])

    body = client.get("/feed?page=2&limit=2").get_json()
    assert len(body["messages"]) == 2
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "totalPages": 3}

    last = client.get("/feed?page=3&limit=2").get_json()
    assert len(last["messages"]) == 1

    empty = client.get("/feed?page=9&limit=2").get_json()
    assert empty["messages"] == []


def test_feed_clamps_bad_paging(app, client, users):
    login(client, users["free"])
    body = client.get("/feed?page=-3&limit=100000").get_json()
    assert body["pagination"]["page"] == 1
    assert body["pagination"]["limit"] == 100

    body = client.get("/feed?page=abc&limit=0").get_json()
    assert body["pagination"]["page"] == 1
    assert body["pagination"]["limit"] == 1
    assert body["pagination"]["totalPages"] == 0


def test_feed_requires_login(client):
    assert client.get("/feed").status_code == 401


def test_feed_clamps_huge_page(app, client, users):
    with app.app_context():
        make_message(users["pro"])
    login(client, users["free"])
    r = client.get("/feed?page=99999999999999999999999&limit=10")
    assert r.status_code == 200
    body = r.get_json()
    assert body["messages"] == []
    assert body["pagination"]["page"] == 2**31 - 1
    assert body["pagination"]["total"] == 1
