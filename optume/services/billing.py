from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urljoin
from flask import current_app
from stripe import StripeClient
from optume.extensions import db
from optume.models import BillingCustomer, Subscription, Team
import hashlib, json


def _client() -> StripeClient:
    key = current_app.config.get("STRIPE_SECRET_KEY")
    if not key:
        raise RuntimeError("STRIPE_SECRET_KEY is not configured")
    return StripeClient(key)


def _absolute_url(path: str) -> str:
    base = (current_app.config.get("APP_BASE_URL") or "").rstrip("/") + "/"
    return urljoin(base, path.lstrip("/"))


def as_dict(obj: Any) -> Dict[str, Any]:
    """Stripe SDK objects → plain dicts (tests and webhooks may already pass dicts)."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    for name in ("to_dict_recursive", "to_dict"):
        fn = getattr(obj, name, None)
        if callable(fn):
            return fn()
    return dict(obj)


def _ts_to_dt(ts) -> Optional[datetime]:
    return datetime.fromtimestamp(ts, tz=timezone.utc) if ts else None


def make_idempotency_key(*parts: Any) -> str:
    raw = "|".join(str(p) for p in parts)
    return "checkout:" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]

def _params_hash(d: Dict[str, Any]) -> str:
    # Stable across runs if params identical; changes when you change fields
    return hashlib.sha256(json.dumps(d, sort_keys=True, separators=(",", ":")).encode("utf-8")).hexdigest()[:16]


def create_checkout_session(*, price_id: str, team_id: int, user_id: int, email: Optional[str] = None) -> Dict[str, Any]:
    """
    Create a Stripe Checkout Session for a subscription to the given Price.
    Returns: {"id": <session_id>, "url": <redirect_url or None>}
    """
    client = _client()
    meta = {"team_id": str(team_id), "user_id": str(user_id)}
    subscription_data: Dict[str, Any] = {"metadata": meta}
    trial_days = int(current_app.config.get("STRIPE_TRIAL_DAYS") or 0)
    if trial_days > 0:
        subscription_data["trial_period_days"] = trial_days

    params: Dict[str, Any] = {
        "mode": "subscription",
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": _absolute_url("pricing?checkout=success&session_id={CHECKOUT_SESSION_ID}"),
        "cancel_url": _absolute_url("pricing?checkout=cancelled"),
        "allow_promotion_codes": True,
        "client_reference_id": str(team_id),
        "metadata": meta,
        "subscription_data": subscription_data,
    }
    bc = BillingCustomer.query.filter_by(team_id=team_id).first()
    if bc:
        params["customer"] = bc.stripe_customer_id
    elif email:
        params["customer_email"] = email

    # Param-aware idempotency: new key whenever Checkout params change
    idem = make_idempotency_key("checkout", "v1", team_id, user_id, price_id, _params_hash(params))
    session = client.checkout.sessions.create(params=params, options={"idempotency_key": idem})
    return {"id": session.id, "url": getattr(session, "url", None)}


def create_portal_session(*, stripe_customer_id: str) -> Dict[str, Any]:
    """Create a Stripe Customer Portal session for an existing Customer."""
    client = _client()
    params = {
        "customer": stripe_customer_id,
        "return_url": _absolute_url("pricing"),
    }
    session = client.billing_portal.sessions.create(params)
    return {"url": session.url}


def _price_summary(price: Dict[str, Any]) -> Dict[str, Any]:
    product = price.get("product")
    recurring = price.get("recurring") or {}
    return {
        "id": price.get("id"),
        "productId": product.get("id") if isinstance(product, dict) else product,
        "productName": product.get("name") if isinstance(product, dict) else None,
        "unitAmount": price.get("unit_amount"),
        "currency": price.get("currency"),
        "interval": recurring.get("interval"),
        "trialPeriodDays": recurring.get("trial_period_days"),
    }


def fetch_pricing() -> Dict[str, Any]:
    """Pro monthly/annual prices as configured, expanded with their product."""
    cfg = current_app.config
    client = _client()
    result: Dict[str, Any] = {"monthlyPrice": None, "yearlyPrice": None, "product": None}
    for key, cfg_key in (("monthlyPrice", "STRIPE_PRICE_PRO_MONTHLY"), ("yearlyPrice", "STRIPE_PRICE_PRO_ANNUAL")):
        price_id = cfg.get(cfg_key)
        if not price_id:
            continue
        price = as_dict(client.prices.retrieve(price_id, params={"expand": ["product"]}))
        summary = _price_summary(price)
        result[key] = summary
        if result["product"] is None and summary["productId"]:
            result["product"] = {"id": summary["productId"], "name": summary["productName"]}
    return result


# ----- Local reconciliation -----

def upsert_subscription(sub_obj: Any, team_id: Optional[int] = None) -> Optional[Subscription]:
    """
    Upsert BillingCustomer + Subscription from a Stripe subscription object.
    The team comes from ``team_id`` or the subscription's metadata; without
    one there is nothing to attach to. Leaves the commit to the caller.
    """
    sub = as_dict(sub_obj)
    meta = sub.get("metadata") or {}
    team_val = team_id or meta.get("team_id")
    try:
        team_id_i = int(team_val)
    except (TypeError, ValueError):
        return None
    if db.session.get(Team, team_id_i) is None:
        return None

    cust = sub.get("customer")
    cust_id = cust.get("id") if isinstance(cust, dict) else cust
    if cust_id:
        bc = BillingCustomer.query.filter_by(stripe_customer_id=cust_id).first()
        if not bc:
            db.session.add(BillingCustomer(team_id=team_id_i, stripe_customer_id=cust_id))

    # First item drives product/price for simple one-price subs
    items = (sub.get("items") or {}).get("data") or []
    first = items[0] if items else {}
    price = first.get("price") or {}
    product = price.get("product")
    product_id = product.get("id") if isinstance(product, dict) else product
    # Newer API versions carry the period on the item
    period_end = sub.get("current_period_end") or first.get("current_period_end")

    s = Subscription.query.filter_by(team_id=team_id_i).first()
    if not s:
        s = Subscription(team_id=team_id_i)
        db.session.add(s)
    s.stripe_subscription_id = sub.get("id") or s.stripe_subscription_id
    s.product_id = product_id or s.product_id
    s.price_id = price.get("id") or s.price_id
    s.status = sub.get("status") or s.status or "incomplete"
    s.cancel_at_period_end = bool(sub.get("cancel_at_period_end"))
    s.current_period_end = _ts_to_dt(period_end) or s.current_period_end
    return s


def reconcile_subscription(stripe_subscription_id: str, team_id: Optional[int] = None) -> Optional[Subscription]:
    sub_obj = _client().subscriptions.retrieve(stripe_subscription_id)
    return upsert_subscription(sub_obj, team_id=team_id)


# ----- Admin actions -----

def _team_subscription(team_id: int) -> Subscription:
    s = Subscription.query.filter_by(team_id=team_id).first()
    if not s or not s.stripe_subscription_id:
        raise LookupError("No subscription found")
    return s


def cancel_at_period_end(team_id: int) -> Subscription:
    s = _team_subscription(team_id)
    upsert_subscription(
        _client().subscriptions.update(s.stripe_subscription_id, params={"cancel_at_period_end": True}),
        team_id=team_id,
    )
    db.session.commit()
    return s


def reactivate(team_id: int) -> Subscription:
    s = _team_subscription(team_id)
    upsert_subscription(
        _client().subscriptions.update(s.stripe_subscription_id, params={"cancel_at_period_end": False}),
        team_id=team_id,
    )
    db.session.commit()
    return s


def cancel_now(team_id: int) -> Subscription:
    s = _team_subscription(team_id)
    upsert_subscription(_client().subscriptions.cancel(s.stripe_subscription_id), team_id=team_id)
    s.status = "canceled"
    db.session.commit()
    return s


def create_subscription(*, team: Team, price_id: str, payment_method_id: Optional[str] = None,
                        email: Optional[str] = None) -> Subscription:
    """Create the Stripe customer on first use, then a subscription to ``price_id``."""
    client = _client()
    meta = {"team_id": str(team.id)}

    bc = BillingCustomer.query.filter_by(team_id=team.id).first()
    if not bc:
        customer = as_dict(client.customers.create(params={"email": email, "name": team.name, "metadata": meta}))
        bc = BillingCustomer(team_id=team.id, stripe_customer_id=customer["id"], billing_email=email)
        db.session.add(bc)
        db.session.flush()

    params: Dict[str, Any] = {
        "customer": bc.stripe_customer_id,
        "items": [{"price": price_id}],
        "metadata": meta,
    }
    if payment_method_id:
        params["default_payment_method"] = payment_method_id

    s = upsert_subscription(client.subscriptions.create(params=params), team_id=team.id)
    db.session.commit()
    return s


# ----- Webhook events -----

def _on_checkout_completed(obj: Dict[str, Any]) -> None:
    sub_id = obj.get("subscription")
    team_id = (obj.get("metadata") or {}).get("team_id") or obj.get("client_reference_id")
    if sub_id:
        reconcile_subscription(sub_id, team_id=team_id)


def _on_subscription_changed(obj: Dict[str, Any]) -> None:
    # Subscription events carry the full object
    upsert_subscription(obj)


def _on_invoice(obj: Dict[str, Any]) -> None:
    if obj.get("subscription"):
        reconcile_subscription(obj["subscription"])


EVENT_HANDLERS = {
    "checkout.session.completed": _on_checkout_completed,
    "customer.subscription.created": _on_subscription_changed,
    "customer.subscription.updated": _on_subscription_changed,
    "customer.subscription.deleted": _on_subscription_changed,
    "invoice.paid": _on_invoice,
    "invoice.payment_failed": _on_invoice,
}


def apply_event(event: Dict[str, Any]) -> bool:
    """Reconcile local billing state from a verified event. False when the type is ignored."""
    handler = EVENT_HANDLERS.get(event.get("type"))
    if handler is None:
        return False
    handler((event.get("data") or {}).get("object") or {})
    return True
