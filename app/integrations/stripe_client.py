import logging
from typing import Any

import stripe

from app.core.config import settings
from app.core.errors import MissingSecret, PaymentProviderError

logger = logging.getLogger(__name__)


def _api_key() -> str:
    if not settings.stripe_secret_key:
        raise MissingSecret("STRIPE_SECRET_KEY is not configured")
    return settings.stripe_secret_key


def create_checkout_session(
    *,
    user_id: str,
    price_id: str,
    success_url: str,
    cancel_url: str,
    mode: str = "subscription",
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    """
    Hosted checkout for one price. Returns ``{"id", "url"}``.

    The user id goes both in ``client_reference_id`` and ``metadata`` so the
    ``checkout.session.completed`` webhook can map the session back to the user.
    """
    params: dict[str, Any] = {
        "mode": mode,
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "client_reference_id": user_id,
        "metadata": {"user_id": user_id},
    }
    if mode == "subscription":
        # subscription events carry the subscription's own metadata, not the session's
        params["subscription_data"] = {"metadata": {"user_id": user_id}}

    # Reuse the stored customer, otherwise let Stripe create one from the email
    if customer_id:
        params["customer"] = customer_id
    elif customer_email:
        params["customer_email"] = customer_email

    try:
        session = stripe.checkout.Session.create(api_key=_api_key(), **params)
    except stripe.StripeError as e:
        logger.error("Stripe checkout session creation failed", extra={"user_id": user_id})
        raise PaymentProviderError(f"Stripe checkout session creation failed: {e}") from e

    if not session.id or not session.url:
        raise PaymentProviderError("Stripe returned a checkout session without id/url")
    return {"id": session.id, "url": session.url}


def create_portal_session(*, customer_id: str, return_url: str) -> dict[str, Any]:
    """Customer self-service portal. Returns ``{"url"}``."""
    try:
        session = stripe.billing_portal.Session.create(
            api_key=_api_key(),
            customer=customer_id,
            return_url=return_url,
        )
    except stripe.StripeError as e:
        logger.error("Stripe portal session creation failed")
        raise PaymentProviderError(f"Stripe portal session creation failed: {e}") from e
    return {"url": session.url}
