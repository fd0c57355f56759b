from conftest import make_user
from optume.billing.plans import PLAN_FREE, PLAN_PRO, plan_for_status, plan_for_user, quota_for
from optume.extensions import db
from optume.models import User


def test_quota_for_known_and_unknown_plans(app):
    with app.app_context():
        assert quota_for(PLAN_FREE) == 1
        assert quota_for(PLAN_PRO) == 3
        assert quota_for("enterprise") == 1
        assert quota_for(None) == 1


def test_quota_for_without_app_context_uses_defaults():
    assert quota_for(PLAN_FREE) == 1
    assert quota_for(PLAN_PRO) == 3


def test_quota_limits_follow_config(app):
    with app.app_context():
        app.config["PRO_MESSAGE_LIMIT"] = 5
        try:
            assert quota_for(PLAN_PRO) == 5
        finally:
            app.config["PRO_MESSAGE_LIMIT"] = 3


def test_only_active_subscription_is_pro():
    assert plan_for_status("active") == PLAN_PRO
    for status in ("trialing", "past_due", "canceled", "incomplete", None, ""):
        assert plan_for_status(status) == PLAN_FREE


def test_plan_for_user_reads_team_subscription(app):
    with app.app_context():
        free_id = make_user("a@example.test")
        pro_id = make_user("b@example.test", status="active")
        lapsed_id = make_user("c@example.test", status="past_due")
        assert plan_for_user(free_id) == PLAN_FREE
        assert plan_for_user(pro_id) == PLAN_PRO
        assert plan_for_user(lapsed_id) == PLAN_FREE


def test_plan_for_user_without_team_is_free(app):
    with app.app_context():
        uid = make_user("d@example.test")
        db.session.get(User, uid).team_id = None
        db.session.commit()
        assert plan_for_user(uid) == PLAN_FREE
