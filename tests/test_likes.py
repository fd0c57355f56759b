import pytest
from sqlalchemy.exc import IntegrityError
from conftest import login, make_message, make_user
from optume.extensions import db
from optume.models import Message, MessageLike
from optume.services.errors import Conflict
from optume.services.likes import has_liked, like_message, unlike_message
from optume.services.policy import Caller


def _count(app, mid):
    with app.app_context():
        return db.session.get(Message, mid).like_count


def test_like_then_duplicate(app, client, users):
    with app.app_context():
        mid = make_message(users["free"])
    login(client, users["pro"])

    r = client.post(f"/messages/{mid}/like")
    assert r.status_code == 200
    assert r.get_json() == {"success": True, "liked": True, "likeCount": 1}

    r = client.post(f"/messages/{mid}/like")
    assert r.status_code == 400
    assert r.get_json() == {"error": "Message already liked"}
    assert _count(app, mid) == 1


def test_unlike_without_like_is_404(app, client, users):
    with app.app_context():
        mid = make_message(users["free"], like_count=0)
    login(client, users["pro"])

    r = client.delete(f"/messages/{mid}/like")
    assert r.status_code == 404
    assert r.get_json() == {"error": "Like not found"}
    assert _count(app, mid) == 0


def test_like_missing_message(client, users):
    login(client, users["pro"])
    assert client.post("/messages/424242/like").status_code == 404
    assert client.delete("/messages/424242/like").status_code == 404
    assert client.post("/messages/nope/like").status_code == 400


def test_like_requires_login(app, client, users):
    with app.app_context():
        mid = make_message(users["free"])
    assert client.post(f"/messages/{mid}/like").status_code == 401


def test_n_likes_then_n_unlikes_returns_to_zero(app, users):
    with app.app_context():
        mid = make_message(users["admin"])
        callers = [
            Caller(id=make_user(f"fan{i}@example.test"), email=f"fan{i}@example.test", role="user")
            for i in range(5)
        ]

        counts = [like_message(c, mid)["likeCount"] for c in callers]
        assert counts == [1, 2, 3, 4, 5]

        # Interleave: unlike two, like one back, then unlike everyone
        unlike_message(callers[0], mid)
        unlike_message(callers[3], mid)
        assert like_message(callers[0], mid)["likeCount"] == 4
        for c in (callers[0], callers[1], callers[2], callers[4]):
            unlike_message(c, mid)

        assert db.session.get(Message, mid).like_count == 0
        assert MessageLike.query.filter_by(message_id=mid).count() == 0


def test_counter_never_goes_negative(app, users):
    with app.app_context():
        mid = make_message(users["free"], like_count=0)
        # Ledger row without a matching counter bump
        db.session.add(MessageLike(user_id=users["pro"], message_id=mid))
        db.session.commit()

        result = unlike_message(Caller(id=users["pro"], email="pro@example.test", role="user"), mid)
        assert result == {"liked": False, "likeCount": 0}


def test_has_liked(app, users):
    with app.app_context():
        mid = make_message(users["free"])
        caller = Caller(id=users["pro"], email="pro@example.test", role="user")
        assert not has_liked(caller.id, mid)
        like_message(caller, mid)
        assert has_liked(caller.id, mid)


def test_unique_like_constraint(app, users):
    with app.app_context():
        mid = make_message(users["free"])
        db.session.add(MessageLike(user_id=users["pro"], message_id=mid))
        db.session.commit()
        db.session.add(MessageLike(user_id=users["pro"], message_id=mid))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()


def test_concurrent_duplicate_like_becomes_conflict(app, users, monkeypatch):
    with app.app_context():
        mid = make_message(users["free"])
        caller = Caller(id=users["pro"], email="pro@example.test", role="user")
        like_message(caller, mid)

        # A second request that passed the existence check before the first committed
        monkeypatch.setattr("optume.services.likes.has_liked", lambda user_id, message_id: False)
        with pytest.raises(Conflict) as exc:
            like_message(caller, mid)
        assert exc.value.message == "Message already liked"
        assert exc.value.status_code == 400

    assert _count(app, mid) == 1
    with app.app_context():
        assert MessageLike.query.filter_by(message_id=mid).count() == 1


@pytest.mark.parametrize("raw", ["99999999999999999999999", "2147483648", "0", "-4"])
def test_out_of_range_message_ids_are_rejected(client, users, raw):
    login(client, users["pro"])
    r = client.post(f"/messages/{raw}/like")
    assert r.status_code == 400
    assert r.get_json() == {"error": "Invalid message ID"}
    assert client.delete(f"/messages/{raw}/like").status_code == 400
