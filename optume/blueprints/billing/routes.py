from flask import current_app, jsonify, request
from flask_login import current_user
from optume.extensions import limiter
from optume.models import BillingCustomer, Subscription
from optume.billing.plans import PLAN_FREE, PLAN_PRO, plan_for_user, quota_for
from optume.services import billing as billing_service
from optume.services.policy import login_required_json
from optume.services.teams import team_for_user
from . import bp


@bp.get("/pricing")
def pricing():
    """Pro prices from Stripe plus the message quota each plan grants."""
    try:
        payload = billing_service.fetch_pricing()
    except Exception:
        current_app.logger.exception("billing.pricing.fetch_failed")
        return jsonify({"error": "Failed to fetch pricing data"}), 500

    payload["plans"] = {
        PLAN_FREE: {"messageLimit": quota_for(PLAN_FREE)},
        PLAN_PRO: {"messageLimit": quota_for(PLAN_PRO)},
    }
    if current_user.is_authenticated:
        payload["currentPlan"] = plan_for_user(current_user.id)
    return jsonify(payload), 200


@bp.get("/stripe-pk")
@login_required_json
def stripe_publishable_key():
    """Publishable key for Stripe.js initialization (safe to expose)."""
    return jsonify({"publishable_key": current_app.config.get("STRIPE_PUBLISHABLE_KEY")})


@bp.post("/checkout.json")
@limiter.limit("10/minute")
@login_required_json
def checkout_json():
    data = request.get_json(silent=True) or {}
    price_id = (data.get("price_id") or data.get("priceId") or "").strip()
    if not price_id:
        return jsonify({"error": "Missing price_id"}), 400

    team = team_for_user(current_user.id)
    if team is None:
        return jsonify({"error": "Team required"}), 403

    # Block duplicate purchases if already active
    sub = Subscription.query.filter_by(team_id=team.id).first()
    if sub and sub.status == "active":
        return jsonify({"error": "Subscription already active"}), 409

    try:
        session = billing_service.create_checkout_session(
            price_id=price_id,
            team_id=team.id,
            user_id=current_user.id,
            email=current_user.email,
        )
    except Exception as e:
        current_app.logger.exception(
            "billing.checkout_json.session_create_failed",
            extra={"team_id": team.id, "price_id": price_id, "user_id": current_user.id},
        )
        user_msg = getattr(e, "user_message", None) or "Could not create checkout session"
        return jsonify({"error": user_msg}), 502

    return jsonify({"sessionId": session["id"], "url": session.get("url")}), 200


@bp.post("/portal.json")
@limiter.limit("10/minute")
@login_required_json
def portal_json():
    team = team_for_user(current_user.id)
    if team is None:
        return jsonify({"error": "Team required"}), 403

    bc = BillingCustomer.query.filter_by(team_id=team.id).first()
    if not bc:
        return jsonify({"error": "No billing profile for this team"}), 404

    try:
        payload = billing_service.create_portal_session(stripe_customer_id=bc.stripe_customer_id)
    except Exception as e:
        current_app.logger.exception(
            "billing.portal_json.session_create_failed",
            extra={"team_id": team.id, "user_id": current_user.id},
        )
        user_msg = getattr(e, "user_message", None) or "Could not create portal session"
        return jsonify({"error": user_msg}), 502

    if not payload.get("url"):
        return jsonify({"error": "Could not create portal session"}), 502
    return jsonify({"url": payload["url"]}), 200
