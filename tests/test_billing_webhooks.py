import json
from datetime import datetime, timedelta, timezone
import pytest
from conftest import login, make_user
from optume.billing.plans import PLAN_PRO, plan_for_user
from optume.extensions import db
from optume.models import BillingCustomer, BillingEventLog, Subscription, User


def _ts(minutes_from_now=30):
    return int((datetime.now(timezone.utc) + timedelta(minutes=minutes_from_now)).timestamp())


def _sub_payload(team_id, status="active", sub_id="sub_test"):
    return {
        "id": sub_id,
        "status": status,
        "customer": "cus_123",
        "metadata": {"team_id": str(team_id)},
        "current_period_end": _ts(60 * 24 * 30),
        "cancel_at_period_end": False,
        "items": {"data": [{"price": {"id": "price_pro_monthly", "product": "prod_pro"}}]},
    }


@pytest.fixture()
def stripe_env(app, monkeypatch):
    app.config["STRIPE_SECRET_KEY"] = "sk_test_x"
    app.config["STRIPE_WEBHOOK_SECRET"] = "whsec_test_x"

    # Trust our payloads instead of verifying a real signature
    import stripe

    def _fake_construct_event(payload, sig_header, secret):
        if sig_header == "bad":
            raise stripe.SignatureVerificationError("bad sig", sig_header)
        return json.loads(payload)

    monkeypatch.setattr(stripe.Webhook, "construct_event", staticmethod(_fake_construct_event))
    return app


def _fake_client(monkeypatch, sub_payload):
    class _FakeSubs:
        def retrieve(self, sub_id):
            assert sub_id == sub_payload["id"]
            return sub_payload

    class _FakeClient:
        def __init__(self, key):
            pass

        @property
        def subscriptions(self):
            return _FakeSubs()

    monkeypatch.setattr("optume.services.billing.StripeClient", _FakeClient)


def _post_event(client, event, sig="t=1,v1=fake"):
    return client.post(
        "/webhooks/stripe",
        data=json.dumps(event),
        headers={"Stripe-Signature": sig, "Content-Type": "application/json"},
    )


def test_checkout_completed_upgrades_team_to_pro(stripe_env, client, monkeypatch):
    app = stripe_env
    with app.app_context():
        uid = make_user("buyer@example.test")
        team_id = db.session.get(User, uid).team_id
    _fake_client(monkeypatch, _sub_payload(team_id))

    event = {
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {"object": {"subscription": "sub_test", "metadata": {"team_id": str(team_id)}}},
    }
    r = _post_event(client, event)
    assert r.status_code == 200
    assert r.get_json() == {"ok": True}

    with app.app_context():
        sub = Subscription.query.filter_by(team_id=team_id).one()
        assert sub.stripe_subscription_id == "sub_test"
        assert sub.status == "active"
        assert sub.price_id == "price_pro_monthly"
        assert BillingCustomer.query.filter_by(stripe_customer_id="cus_123").one().team_id == team_id
        assert plan_for_user(uid) == PLAN_PRO

    # Pro quota now applies
    login(client, uid)
    for i in range(3):
        assert client.post("/messages", json={"title": f"t{i}", "content": "x"}).status_code == 200


def test_duplicate_event_is_short_circuited(stripe_env, client, monkeypatch):
    app = stripe_env
    with app.app_context():
        team_id = db.session.get(User, make_user("dup@example.test")).team_id
    event = {"id": "evt_dup", "type": "customer.subscription.updated", "data": {"object": _sub_payload(team_id)}}

    assert _post_event(client, event).get_json() == {"ok": True}
    r = _post_event(client, event)
    assert r.get_json() == {"ok": True, "duplicate": True}
    with app.app_context():
        assert BillingEventLog.query.filter_by(stripe_event_id="evt_dup").count() == 1


def test_subscription_deleted_downgrades(stripe_env, client):
    app = stripe_env
    with app.app_context():
        uid = make_user("churn@example.test", status="active")
        team_id = db.session.get(User, uid).team_id
    event = {
        "id": "evt_del",
        "type": "customer.subscription.deleted",
        "data": {"object": _sub_payload(team_id, status="canceled")},
    }
    assert _post_event(client, event).status_code == 200
    with app.app_context():
        assert plan_for_user(uid) == "free"


def test_invalid_signature_is_logged_and_rejected(stripe_env, client):
    app = stripe_env
    r = _post_event(client, {"id": "evt_x", "type": "ping"}, sig="bad")
    assert r.status_code == 400
    assert r.get_json() == {"error": "invalid_signature"}
    with app.app_context():
        row = BillingEventLog.query.one()
        assert row.signature_valid is False
        assert row.stripe_event_id.startswith("invalid:")


def test_handler_error_is_noted_and_acknowledged(stripe_env, client, monkeypatch):
    app = stripe_env

    class _Boom:
        def __init__(self, key):
            raise RuntimeError("stripe down")

    monkeypatch.setattr("optume.services.billing.StripeClient", _Boom)
    event = {"id": "evt_err", "type": "invoice.paid", "data": {"object": {"subscription": "sub_x"}}}
    r = _post_event(client, event)
    assert r.status_code == 200
    with app.app_context():
        assert BillingEventLog.query.filter_by(stripe_event_id="evt_err").one().notes == "handler_error:RuntimeError"


def test_pricing_reports_plan_limits(app, client, monkeypatch, users):
    monkeypatch.setattr(
        "optume.services.billing.fetch_pricing",
        lambda: {"monthlyPrice": None, "yearlyPrice": None, "product": None},
    )
    login(client, users["pro"])
    body = client.get("/billing/pricing").get_json()
    assert body["plans"] == {"free": {"messageLimit": 1}, "pro": {"messageLimit": 3}}
    assert body["currentPlan"] == "pro"


def test_checkout_blocked_when_already_active(client, users):
    login(client, users["pro"])
    r = client.post("/billing/checkout.json", json={"price_id": "price_pro_monthly"})
    assert r.status_code == 409


def test_checkout_creates_session(app, client, monkeypatch, users):
    app.config["STRIPE_SECRET_KEY"] = "sk_test_x"
    captured = {}

    class _Sessions:
        def create(self, params, options):
            captured.update(params)
            return type("S", (), {"id": "cs_1", "url": "https://checkout.example/cs_1"})()

    class _FakeClient:
        def __init__(self, key):
            self.checkout = type("C", (), {"sessions": _Sessions()})()

    monkeypatch.setattr("optume.services.billing.StripeClient", _FakeClient)
    login(client, users["free"])
    r = client.post("/billing/checkout.json", json={"price_id": "price_pro_monthly"})
    assert r.status_code == 200
    assert r.get_json() == {"sessionId": "cs_1", "url": "https://checkout.example/cs_1"}
    assert captured["customer_email"] == "free@example.test"
    assert captured["metadata"]["user_id"] == str(users["free"])
