from flask import current_app, jsonify, request
from optume.extensions import db
from optume.models import User
from optume.services import billing as billing_service
from optume.services.policy import current_caller
from optume.services.subscriptions import list_team_subscriptions, resolve_team
from optume.utils.validators import parse_id
from . import bp

# action -> (service call, success message, failure message)
_ACTIONS = {
    "cancel_subscription": (
        billing_service.cancel_at_period_end,
        "Subscription will be canceled at the end of the current period",
        "Failed to cancel subscription in Stripe",
    ),
    "reactivate_subscription": (
        billing_service.reactivate,
        "Subscription reactivated successfully",
        "Failed to reactivate subscription in Stripe",
    ),
    "immediate_cancel": (
        billing_service.cancel_now,
        "Subscription canceled immediately",
        "Failed to cancel subscription immediately",
    ),
}


@bp.get("/subscriptions")
def list_subscriptions():
    args = request.args
    payload = list_team_subscriptions(
        search=(args.get("search") or "").strip(),
        status=(args.get("status") or "all").strip(),
        limit=args.get("limit"),
        offset=args.get("offset"),
    )
    return jsonify(payload), 200


@bp.post("/subscriptions")
def manage_subscription():
    data = request.get_json(silent=True)
    data = data if isinstance(data, dict) else {}
    action = data.get("action")
    team = resolve_team(team_id=data.get("teamId"), user_id=data.get("userId"))
    actor = current_caller()

    if action == "create_subscription":
        price_id = (data.get("priceId") or "").strip()
        if not price_id:
            return jsonify({"error": "Price ID is required"}), 400
        owner_email = _billing_email(team, data.get("userId"))
        try:
            sub = billing_service.create_subscription(
                team=team,
                price_id=price_id,
                payment_method_id=data.get("paymentMethodId"),
                email=owner_email,
            )
        except Exception:
            db.session.rollback()
            current_app.logger.exception(
                "admin.subscriptions.create_failed",
                extra={"team_id": team.id, "actor_id": actor.id},
            )
            return jsonify({"error": "Failed to create subscription"}), 500
        _log_action(action, team.id, actor.id)
        return jsonify({
            "success": True,
            "message": "Subscription created successfully",
            "subscription": sub.to_dict() if sub else None,
        }), 200

    if action not in _ACTIONS:
        return jsonify({"error": "Invalid action"}), 400

    call, ok_message, fail_message = _ACTIONS[action]
    try:
        sub = call(team.id)
    except LookupError:
        return jsonify({"error": "No active subscription found"}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "admin.subscriptions.action_failed",
            extra={"action": action, "team_id": team.id, "actor_id": actor.id},
        )
        return jsonify({"error": fail_message}), 500

    _log_action(action, team.id, actor.id)
    return jsonify({"success": True, "message": ok_message, "subscription": sub.to_dict()}), 200


def _billing_email(team, user_id):
    uid = parse_id(user_id)
    user = db.session.get(User, uid) if uid is not None else None
    if user:
        return user.email
    owner = next((m.user for m in team.members if m.role == "owner"), None)
    return owner.email if owner else None


def _log_action(action, team_id, actor_id):
    current_app.logger.info(
        "admin_subscription_action",
        extra={"event": "admin_subscription_action", "action": action, "team_id": team_id, "actor_id": actor_id},
    )
