"""
Entitlement Store: the only code that writes subscription state.

Write path: ``apply_event`` turns an already-verified Stripe event into an
upsert on the user's single entitlement row. Deliveries are at-least-once and
may arrive out of order, so every write is idempotent (upsert by user, event
ledger) and events older than the last applied one are skipped.

Read path: ``read_entitlement`` returns an immutable snapshot for one user.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import PersistenceFailure, UnresolvableIdentity
from app.models.entitlement import Entitlement, EntitlementEvent, SUBSCRIPTION_STATUSES
from app.models.user import User
from app.schemas.entitlement import EntitlementDetails
from app.utils.dt import as_utc_aware, from_unix, utcnow

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

# Stripe subscription status -> our status
_STATUS_MAP = {
    "active": "active",
    "trialing": "trialing",
    "past_due": "past_due",
    "unpaid": "past_due",
    "canceled": "canceled",
    "incomplete_expired": "canceled",
}


def map_provider_status(status: str | None) -> str:
    # incomplete / paused / anything new -> no access
    return _STATUS_MAP.get(status or "", "none")


@dataclass
class ApplyResult:
    event_id: str
    event_type: str
    # applied / duplicate / skipped_stale / dropped / ignored
    outcome: str
    user_id: str | None = None
    subscription_status: str | None = None


# ---------------------------
# identity resolution
# ---------------------------

def _ref_id(value: Any) -> str | None:
    # Stripe sends ids, or whole objects when expanded
    if isinstance(value, dict):
        value = value.get("id")
    return str(value) if value else None


def _resolve_checkout_user(db: Session, session_obj: dict[str, Any]) -> User:
    metadata = session_obj.get("metadata") or {}
    for candidate in (metadata.get("user_id"), session_obj.get("client_reference_id")):
        if not candidate:
            continue
        user = db.get(User, str(candidate))
        if user:
            return user
    raise UnresolvableIdentity("Checkout session does not reference a known user")


def _resolve_subscription_user(db: Session, sub: dict[str, Any]) -> User:
    customer_id = _ref_id(sub.get("customer"))
    if customer_id:
        user = db.execute(
            select(User).where(User.stripe_customer_id == customer_id)
        ).scalar_one_or_none()
        if user:
            return user

    user_id = (sub.get("metadata") or {}).get("user_id")
    if user_id:
        user = db.get(User, str(user_id))
        if user:
            return user
    raise UnresolvableIdentity("Subscription customer is not linked to a known user")


# ---------------------------
# record helpers
# ---------------------------

def _get_or_create_record(db: Session, user_id: str) -> Entitlement:
    ent = db.execute(
        select(Entitlement).where(Entitlement.user_id == user_id)
    ).scalar_one_or_none()
    if ent is None:
        ent = Entitlement(user_id=user_id, subscription_status="none", cancel_at_period_end=False)
        db.add(ent)
        db.flush()
    return ent


def _is_stale(ent: Entitlement, event_at: datetime | None) -> bool:
    last = as_utc_aware(ent.last_event_at)
    return bool(last and event_at and event_at < last)


def _touch(ent: Entitlement, event_at: datetime | None) -> None:
    now = utcnow()
    prev = as_utc_aware(ent.updated_at)
    ent.updated_at = max(now, prev) if prev else now
    if event_at:
        last = as_utc_aware(ent.last_event_at)
        ent.last_event_at = max(event_at, last) if last else event_at


def _link_customer(db: Session, user: User, customer_id: str | None) -> None:
    if not customer_id or user.stripe_customer_id == customer_id:
        return
    owner = db.execute(
        select(User).where(User.stripe_customer_id == customer_id, User.id != user.id)
    ).scalar_one_or_none()
    if owner:
        logger.warning(
            "Stripe customer already linked to another user; keeping existing link",
            extra={"user_id": user.id},
        )
        return
    user.stripe_customer_id = customer_id


def _first_item(sub: dict[str, Any]) -> dict[str, Any]:
    items = (sub.get("items") or {}).get("data") or []
    return items[0] if items else {}


# ---------------------------
# event processors
# ---------------------------

def _process_checkout(db: Session, obj: dict[str, Any], event_at: datetime | None) -> tuple[str, User, Entitlement]:
    user = _resolve_checkout_user(db, obj)
    ent = _get_or_create_record(db, user.id)
    if _is_stale(ent, event_at):
        return "skipped_stale", user, ent

    customer_id = _ref_id(obj.get("customer"))
    _link_customer(db, user, customer_id)

    ent.subscription_status = "active"
    ent.subscription_id = _ref_id(obj.get("subscription"))
    if customer_id:
        ent.customer_id = customer_id
    _touch(ent, event_at)
    return "applied", user, ent


def _process_subscription_change(db: Session, obj: dict[str, Any], event_at: datetime | None) -> tuple[str, User, Entitlement]:
    user = _resolve_subscription_user(db, obj)
    ent = _get_or_create_record(db, user.id)
    if _is_stale(ent, event_at):
        return "skipped_stale", user, ent

    item = _first_item(obj)
    period_end = obj.get("current_period_end") or item.get("current_period_end")

    ent.subscription_status = map_provider_status(obj.get("status"))
    ent.subscription_id = _ref_id(obj.get("id"))
    ent.price_id = _ref_id((item.get("price") or {}).get("id")) or ent.price_id
    ent.current_period_end = from_unix(period_end)
    ent.cancel_at_period_end = bool(obj.get("cancel_at_period_end"))
    ent.customer_id = _ref_id(obj.get("customer")) or ent.customer_id
    _touch(ent, event_at)
    return "applied", user, ent


def _process_subscription_deleted(db: Session, obj: dict[str, Any], event_at: datetime | None) -> tuple[str, User, Entitlement]:
    user = _resolve_subscription_user(db, obj)
    ent = _get_or_create_record(db, user.id)
    if _is_stale(ent, event_at):
        return "skipped_stale", user, ent

    sub_id = _ref_id(obj.get("id"))
    if ent.subscription_id and sub_id and ent.subscription_id != sub_id:
        # an older subscription ended; the user has moved on to a newer one
        return "skipped_stale", user, ent

    ent.subscription_status = "canceled"
    ent.subscription_id = None
    ent.cancel_at_period_end = False
    _touch(ent, event_at)
    return "applied", user, ent


_Processor = Callable[[Session, dict[str, Any], datetime | None], tuple[str, User, Entitlement]]

_PROCESSORS: dict[str, _Processor] = {
    CHECKOUT_COMPLETED: _process_checkout,
    SUBSCRIPTION_CREATED: _process_subscription_change,
    SUBSCRIPTION_UPDATED: _process_subscription_change,
    SUBSCRIPTION_DELETED: _process_subscription_deleted,
}


# ---------------------------
# public API
# ---------------------------

def apply_event(db: Session, event: dict[str, Any]) -> ApplyResult:
    """
    Apply one verified event. Only call this with the output of ``verify_event``.

    Raises ``PersistenceFailure`` when the database write fails; unmatchable
    events are logged and reported as ``dropped`` instead of raising.
    """
    event_id = str(event["id"])
    event_type = str(event["type"])
    log_ctx = {"event_id": event_id, "event_type": event_type}

    processor = _PROCESSORS.get(event_type)
    if processor is None:
        logger.info("Ignoring unhandled webhook event", extra=log_ctx)
        return ApplyResult(event_id, event_type, "ignored")

    obj = (event.get("data") or {}).get("object") or {}
    event_at = from_unix(event.get("created"))

    try:
        seen = db.execute(
            select(EntitlementEvent.id).where(EntitlementEvent.event_id == event_id)
        ).first()
        if seen:
            logger.info("Webhook event already processed", extra=log_ctx)
            return ApplyResult(event_id, event_type, "duplicate")

        try:
            outcome, user, ent = processor(db, obj, event_at)
        except UnresolvableIdentity as e:
            db.rollback()
            logger.warning("Dropping webhook event: %s", e.message, extra=log_ctx)
            return ApplyResult(event_id, event_type, "dropped")

        db.add(EntitlementEvent(
            event_id=event_id,
            event_type=event_type,
            user_id=user.id,
            outcome=outcome,
            subscription_status=ent.subscription_status,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to persist webhook event", extra=log_ctx)
        raise PersistenceFailure(f"Could not persist {event_type} {event_id}") from e

    logger.info(
        "Webhook event processed",
        extra={**log_ctx, "user_id": user.id, "outcome": outcome, "status": ent.subscription_status},
    )
    return ApplyResult(event_id, event_type, outcome, user.id, ent.subscription_status)


def override_status(db: Session, user_id: str, status: str, *, actor_id: str) -> Entitlement:
    """Admin override: set a user's status without a payment event."""
    if status not in SUBSCRIPTION_STATUSES:
        raise ValueError(f"Unknown subscription status: {status}")
    if db.get(User, user_id) is None:
        raise LookupError(f"User not found: {user_id}")

    try:
        ent = _get_or_create_record(db, user_id)
        ent.subscription_status = status
        _touch(ent, None)
        db.add(EntitlementEvent(
            event_id=f"override:{uuid4().hex}",
            event_type="admin.override",
            user_id=user_id,
            outcome="override",
            subscription_status=status,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to persist admin override", extra={"user_id": user_id})
        raise PersistenceFailure("Could not persist admin override") from e

    logger.info(
        "Entitlement overridden by admin %s", actor_id,
        extra={"user_id": user_id, "status": status},
    )
    return ent


def read_entitlement(db: Session, user_id: str) -> EntitlementDetails | None:
    """Customer-to-subscription view for one identity; at most one row."""
    row = db.execute(
        select(Entitlement, User.stripe_customer_id)
        .join(User, User.id == Entitlement.user_id)
        .where(User.id == user_id)
        .limit(1)
    ).first()
    if row is None:
        return None

    ent, stored_customer = row
    return EntitlementDetails(
        user_id=ent.user_id,
        subscription_status=ent.subscription_status,
        subscription_id=ent.subscription_id,
        price_id=ent.price_id,
        customer_id=ent.customer_id or stored_customer,
        current_period_end=as_utc_aware(ent.current_period_end),
        cancel_at_period_end=ent.cancel_at_period_end,
        updated_at=as_utc_aware(ent.updated_at),
    )
