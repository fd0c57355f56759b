from conftest import login, make_message, make_user
from optume.extensions import db
from optume.models import Message, MessageLike, User


def test_admin_routes_require_admin(client, users):
    assert client.get("/admin/users").status_code == 401
    login(client, users["free"])
    r = client.get("/admin/users")
    assert r.status_code == 403
    assert r.get_json() == {"error": "Admin access required"}


def test_list_users_with_stats_and_search(app, client, users):
    with app.app_context():
        make_message(users["pro"])
    login(client, users["admin"])

    body = client.get("/admin/users").get_json()
    assert len(body["users"]) == 3
    stats = {u["email"]: u["stats"]["totalMessages"] for u in body["users"]}
    assert stats["pro@example.test"] == 1
    assert stats["free@example.test"] == 0

    body = client.get("/admin/users?search=pro@").get_json()
    assert [u["email"] for u in body["users"]] == ["pro@example.test"]


def test_soft_delete_restore_and_include_deleted(app, client, users):
    login(client, users["admin"])
    r = client.delete(f"/admin/users?userId={users['free']}")
    assert r.status_code == 200
    assert r.get_json()["type"] == "soft_delete"

    emails = [u["email"] for u in client.get("/admin/users").get_json()["users"]]
    assert "free@example.test" not in emails
    emails = [u["email"] for u in client.get("/admin/users?includeDeleted=true").get_json()["users"]]
    assert "free@example.test" in emails

    r = client.patch("/admin/users", json={"userId": users["free"], "action": "restore"})
    assert r.status_code == 200
    with app.app_context():
        assert db.session.get(User, users["free"]).deleted_at is None


def test_admin_cannot_delete_self(client, users):
    login(client, users["admin"])
    r = client.delete(f"/admin/users?userId={users['admin']}")
    assert r.status_code == 400
    assert r.get_json() == {"error": "Cannot delete your own account"}


def test_hard_delete_keeps_like_counts_consistent(app, client, users):
    with app.app_context():
        theirs = make_message(users["pro"], like_count=1)
        own = make_message(users["free"], like_count=1)
        db.session.add(MessageLike(user_id=users["free"], message_id=theirs))
        db.session.add(MessageLike(user_id=users["pro"], message_id=own))
        db.session.commit()
    login(client, users["admin"])

    r = client.delete(f"/admin/users?userId={users['free']}&hardDelete=true")
    assert r.status_code == 200
    assert r.get_json()["type"] == "hard_delete"

    with app.app_context():
        assert db.session.get(User, users["free"]) is None
        assert db.session.get(Message, own) is None
        assert db.session.get(Message, theirs).like_count == 0
        assert MessageLike.query.count() == 0


def test_update_user(app, client, users):
    login(client, users["admin"])
    r = client.patch("/admin/users", json={
        "userId": users["free"],
        "action": "update",
        "name": "Renamed",
        "role": "admin",
        "emailVerified": True,
    })
    assert r.status_code == 200
    with app.app_context():
        user = db.session.get(User, users["free"])
        assert (user.name, user.role, user.email_verified) == ("Renamed", "admin", True)

    r = client.patch("/admin/users", json={"userId": users["free"], "action": "update", "role": "root"})
    assert r.status_code == 400
    r = client.patch("/admin/users", json={"userId": users["free"], "action": "update", "email": "pro@example.test"})
    assert r.status_code == 400


def test_patch_user_bad_requests(client, users):
    login(client, users["admin"])
    assert client.patch("/admin/users", json={"action": "restore"}).status_code == 400
    r = client.patch("/admin/users", json={"userId": users["free"], "action": "explode"})
    assert r.get_json() == {"error": "Invalid action"}
    assert client.patch("/admin/users", json={"userId": 999999, "action": "restore"}).status_code == 404


def test_admin_by_allow_list_email(app, client):
    with app.app_context():
        uid = make_user("admin@example.com")
    login(client, uid)
    assert client.get("/admin/users").status_code == 200
