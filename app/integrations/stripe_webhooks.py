import json
import logging
from typing import Any

import stripe

from app.core.errors import InvalidSignature, MalformedPayload, MissingSecret

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "stripe-signature"
DEFAULT_TOLERANCE_SECONDS = 300


def verify_event(
    payload: bytes,
    signature: str | None,
    secret: str | None,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> dict[str, Any]:
    """
    Check a raw webhook delivery against the signing secret and return the event.

    ``payload`` must be the exact request bytes: Stripe signs
    ``{timestamp}.{body}`` with HMAC-SHA256, so any re-serialisation breaks it.
    Nothing is trusted (or even parsed) before the signature passes.
    """
    if not secret:
        raise MissingSecret("STRIPE_WEBHOOK_SECRET is not configured")
    if not signature:
        raise InvalidSignature("Missing stripe-signature header")

    try:
        stripe.Webhook.construct_event(payload, signature, secret, tolerance=tolerance)
    except stripe.SignatureVerificationError as e:
        raise InvalidSignature(f"Signature verification failed: {e}") from e
    except ValueError as e:
        # signature matched but the body is not JSON (or not UTF-8)
        raise MalformedPayload(f"Invalid payload: {e}") from e

    # construct_event already proved the bytes decode; keep a plain dict downstream
    event = json.loads(payload)
    if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
        raise MalformedPayload("Event is missing id/type")

    logger.debug("Verified webhook", extra={"event_id": event["id"], "event_type": event["type"]})
    return event
