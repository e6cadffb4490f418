import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy.orm import Session

from app.core.security import create_access_token
from app.models.entitlement import Entitlement
from app.models.user import User
from app.schemas.entitlement import EntitlementDetails

WEBHOOK_SECRET = "whsec_test_secret"


def sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a stripe-signature header the way Stripe does (t=..., v1=HMAC-SHA256)."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def make_event(event_type: str, obj: dict, *, event_id: str | None = None, created: int | None = None) -> dict:
    return {
        "id": event_id or f"evt_{uuid4().hex[:16]}",
        "object": "event",
        "type": event_type,
        "created": int(time.time()) if created is None else created,
        "data": {"object": obj},
    }


def checkout_completed(user_id: str, *, subscription: str = "sub_123", customer: str = "cus_123", **kw) -> dict:
    return make_event("checkout.session.completed", {
        "id": f"cs_{uuid4().hex[:8]}",
        "object": "checkout.session",
        "client_reference_id": user_id,
        "customer": customer,
        "subscription": subscription,
        "metadata": {"user_id": user_id},
    }, **kw)


def subscription_event(
    event_type: str,
    *,
    status: str = "active",
    subscription: str = "sub_123",
    customer: str = "cus_123",
    price: str = "price_premium",
    period_end: int = 1893456000,
    metadata: dict | None = None,
    **kw,
) -> dict:
    return make_event(event_type, {
        "id": subscription,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "cancel_at_period_end": False,
        "current_period_end": period_end,
        "items": {"data": [{"price": {"id": price}}]},
        "metadata": metadata or {},
    }, **kw)


def post_event(client, event: dict, *, secret: str = WEBHOOK_SECRET, signature: str | None = None):
    body = json.dumps(event).encode("utf-8")
    headers = {"stripe-signature": signature if signature is not None else sign(body, secret)}
    return client.post("/webhook-handler", content=body, headers=headers)


def create_user(db: Session, email: str, *, is_admin: bool = False, customer: str | None = None) -> User:
    user = User(email=email, password_hash="not-a-real-hash", is_admin=is_admin, stripe_customer_id=customer)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_record(db: Session, user: User, status: str = "active", **fields) -> Entitlement:
    ent = Entitlement(user_id=user.id, subscription_status=status, cancel_at_period_end=False, **fields)
    db.add(ent)
    db.commit()
    db.refresh(ent)
    return ent


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, is_admin=user.is_admin)}"}


def make_details(status: str = "active", user_id: str = "user_1") -> EntitlementDetails:
    return EntitlementDetails(
        user_id=user_id,
        subscription_status=status,
        subscription_id="sub_123" if status != "none" else None,
        price_id="price_premium",
        customer_id="cus_123",
        current_period_end=None,
        cancel_at_period_end=False,
        updated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
