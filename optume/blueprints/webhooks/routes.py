import hashlib
import json
import stripe
from flask import request, jsonify, current_app
from optume.extensions import db, csrf
from optume.models import BillingEventLog
from optume.services import billing as billing_service
from . import bp


def _record(event_id, event_type, payload, signature_valid=True):
    log = BillingEventLog(
        stripe_event_id=event_id,
        type=event_type,
        signature_valid=signature_valid,
        payload=payload,
    )
    db.session.add(log)
    db.session.commit()
    return log


@csrf.exempt
@bp.post("/stripe")
def stripe_webhook():
    """
    Verify the Stripe signature, record the event once, then reconcile the
    team's subscription. Handler failures are noted on the log row and still
    answered with 200 so Stripe stops retrying.
    """
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret:
        current_app.logger.error("stripe_webhook_unconfigured", extra={"event": "stripe_webhook_unconfigured"})
        return jsonify({"error": "Webhook not configured"}), 500

    raw = request.get_data(cache=False, as_text=False)
    try:
        event = stripe.Webhook.construct_event(
            payload=raw.decode("utf-8"),
            sig_header=request.headers.get("Stripe-Signature", ""),
            secret=secret,
        )
    except (ValueError, stripe.SignatureVerificationError):
        # Payload is untrusted: key the audit row on its digest only
        synthetic_id = "invalid:" + hashlib.sha256(raw).hexdigest()[:32]
        if not BillingEventLog.query.filter_by(stripe_event_id=synthetic_id).first():
            _record(synthetic_id, "signature_invalid", {}, signature_valid=False)
        current_app.logger.warning("stripe_webhook_invalid_signature", extra={"event": "stripe_webhook_invalid_signature"})
        return jsonify({"error": "invalid_signature"}), 400

    event = billing_service.as_dict(event)
    ev_id, ev_type = event.get("id"), event.get("type")
    if not ev_id or not ev_type:
        return jsonify({"error": "malformed_event"}), 400

    if BillingEventLog.query.filter_by(stripe_event_id=ev_id).first():
        return jsonify({"ok": True, "duplicate": True}), 200

    try:
        payload = json.loads(raw.decode("utf-8"))
    except ValueError:
        payload = {"_decode_error": True}
    _record(ev_id, ev_type, payload)

    try:
        handled = billing_service.apply_event(event)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        log = BillingEventLog.query.filter_by(stripe_event_id=ev_id).first()
        log.notes = f"handler_error:{type(e).__name__}"
        db.session.commit()
        current_app.logger.exception(
            "stripe_webhook_handler_error",
            extra={"event": "stripe_webhook_handler_error", "stripe_event_id": ev_id, "type": ev_type},
        )
        return jsonify({"ok": True}), 200

    current_app.logger.info(
        "stripe_webhook_processed",
        extra={"event": "stripe_webhook_processed", "stripe_event_id": ev_id, "type": ev_type, "handled": handled},
    )
    return jsonify({"ok": True}), 200
